"""Generation models, orchestration services and streaming sessions."""
