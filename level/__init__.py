"""Procedural tunnel level generation.

A seeded walker carves a path through a hookable block grid, after which a
fixed sequence of post-processing passes adds freeze buffers, start/finish
rooms and shortcuts. Use :meth:`level.generator.Generator.generate_map` for
a complete run or drive :class:`level.generator.Generator` step by step.
"""
