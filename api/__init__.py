"""
FastAPI layer for the camouflage detection pipeline.

Exposes:
- `/detect`         : JSON-based detection endpoint (image path on disk)
- `/detect/upload`  : Multipart file upload
- `/analyze/upload` : Remote vision-model description of an upload
- `/graph/ascii`    : ASCII diagram of the LangGraph pipeline
- `/graph/mermaid`  : Mermaid graph source for visualization
- `/health`         : Basic health check
"""
