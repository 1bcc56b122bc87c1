"""Neural network layers for the Llama decoder.

Each layer takes its config object in `__init__` so that
`Config.build()` can construct it from the config's type alone.
"""
