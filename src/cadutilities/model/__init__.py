"""
The MODEL layer contains the drawing object model: geometric primitives,
entities, the drawing database with its transactions, and persistence.
It has NO knowledge of the helper functions built on top of it.
"""
