"""
Modular Reducer Composition

Runtime that assembles independently authored reducer modules, each owning one
slice of a state tree, into a single transition function.
"""

__version__ = "0.1.0"
