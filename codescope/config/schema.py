# codescope/config/schema.py
from pydantic import BaseModel, Field
from typing import List, Optional

class AnalysisConfig(BaseModel):
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY" # Name of the env var holding the key, never the key itself
    timeout: float = 60.0 # Seconds

class AppConfig(BaseModel):
    # Max simultaneous file reads during ingestion. 0 disables the bound.
    ingest_concurrency: int = Field(default=64, ge=0)
    listing_page_size: int = Field(default=100, ge=1) # Entries per read_next_batch for local folders
    # Tried in order, then utf-8 with replacement characters. latin-1 decodes any
    # byte sequence, so nothing listed after it would ever be tried.
    text_encodings: List[str] = Field(default_factory=lambda: ["utf-8", "cp1252"])
    max_context_tokens: int = 8192
    ignore_patterns: List[str] = Field(default_factory=lambda: [
        # Version control
        ".git", ".svn", ".hg",
        # Python specific
        "__pycache__", "*.pyc", ".pytest_cache", ".mypy_cache",
        # Virtual environments / dependencies
        "venv", ".venv", "node_modules",
        # OS specific
        ".DS_Store", "Thumbs.db",
    ])
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    preamble: Optional[str] = None # Overrides the default analysis instruction when set
