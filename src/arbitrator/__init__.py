"""LLM Arbitrator - route coding tasks across local model backends.

Modules:
    - routing: Capability-based backend selection
    - context_engine: Related file, test, and documentation discovery
    - providers: Ollama and LM Studio backends
    - templates: Domain prompt templates
    - enhancers: Code generation, verification, prompt optimization
    - service: Per-request tool handler
"""

__version__ = "1.0.0"
