"""
Gateway configuration: provider defaults, YAML schema and loader.
"""
