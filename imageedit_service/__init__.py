"""
AI image edit service package.

Exposes the chroma-key primitives that turn a flattened magenta background
into transparency, the linear edit history with undo/redo, the Gemini edit
client, and the FastAPI application that ties them into editing sessions.
"""
