"""Model providers and summarizer adapters."""
