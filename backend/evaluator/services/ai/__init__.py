"""
AI Services Package

Remote inference and reference retrieval used by the evaluation pipeline:
- Inference clients (OpenAI, Anthropic) with structured output
- Vector databases (Pinecone, in-memory)
- Reference store lookups and stage prompts
"""
