"""
Games module - Ready-made game definitions.

Each game has its own subpackage with:
- The raw definition as a JSON-shaped dict
- A factory returning the parsed GameDefinition
"""
