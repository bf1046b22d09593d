"""Search and highlighting over parsed conversations."""
