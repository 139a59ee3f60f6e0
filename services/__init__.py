"""
Application services - chat state, generation and session orchestration.
"""
