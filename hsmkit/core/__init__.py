"""
Core package: machine definitions, the authoring surface, transition
resolution and instances.
"""
