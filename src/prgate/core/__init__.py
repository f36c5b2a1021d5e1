"""Core infrastructure shared by every prgate subsystem.

    - config: Application configuration (pydantic-settings)
    - console: Rich console and logging setup
    - result: Result type and error hierarchy
    - decorators: CLI error presentation
    - registry: CLI command discovery
"""
