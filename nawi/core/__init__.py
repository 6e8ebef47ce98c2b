"""
Core utilities: the error taxonomy shared by the resolver, the context
builder and the CLI.
"""
