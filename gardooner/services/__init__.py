"""
Service Organization
====================

**application/**
  Services wired once by ServiceContainer: context building, chat, tasks.

**ai/**
  LLM backends, prompts and the action engine.

**utilities/**
  Stateless helpers around external dependencies (weather).
"""
