"""
Tutor LLM Orchestrator

Provider orchestration and streaming tutor sessions for the education
platform: interchangeable LLM backends with opt-in fallback, structured
output extraction, generation pipelines and one live streaming session per
conversation.
"""

__version__ = "1.0.0"
