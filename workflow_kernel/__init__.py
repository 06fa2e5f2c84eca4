"""
Workflow Kernel

A guarded state-transition core for driving entities through business
states with:
- Structural transition tables validated at construction
- Registered guard predicates per edge
- Typed rejections for every failure mode
- One immutable audit record per committed transition
"""

__version__ = "0.1.0"
