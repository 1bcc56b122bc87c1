"""Inference: decode state, sampling, streaming and the generation loop.

The generation loop in `generate` drives one sequence at a time. The
decode worker in `session` turns sampled tokens into text on its own
thread and signals when a stop token appears.
"""
