"""Domain models and value types.

Pure data: the domain knows nothing about processes, prompts or the CLI.
"""
