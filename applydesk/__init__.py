"""
ApplyDesk Backend.

Core components:
- agents: LLM prompts for matching, cover letters, interview questions
- tools: JSearch / Tavily job sources, PDF parser
- services: scanner, notifications, plans, resume customizer, interviews
- jobqueue: database-backed job queue, scheduler and worker
- api: FastAPI routes
"""
