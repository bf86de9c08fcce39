from pathlib import Path

from setuptools import find_namespace_packages, setup

ROOT = Path(__file__).parent

# Read requirements (ignore comments and recursive -r entries)
req_path = ROOT / "requirements.txt"
requirements = []
if req_path.exists():
    for line in req_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("-r"):
            continue
        requirements.append(line)

readme = (ROOT / "README.md").read_text(encoding="utf-8") if (ROOT / "README.md").exists() else ""

setup(
    name="gardooner-analysis",
    version="1.0.0",
    description="Gardooner scheduled garden analysis and AI action execution",
    long_description=readme,
    long_description_content_type="text/markdown",
    # blueprints/, infrastructure/ and some service folders are namespace packages
    packages=find_namespace_packages(include=["gardooner*", "infrastructure*"]),
    py_modules=["gardooner_app"],
    python_requires=">=3.10,<4",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-flask>=1.2.0",
            "pytest-cov>=4.1.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Home Automation",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    keywords="gardening llm scheduling flask",
    entry_points={
        "console_scripts": [
            "gardooner-server=gardooner_app:main",
            "gardooner-scheduler=gardooner.workers.scheduler_cli:main",
        ]
    },
)
