"""The decode loop: prompt in, streamed text out.

Each step feeds the transformer either the whole prompt (first step) or
the last sampled token, after preparing the KV caches and the rotary
tracker for that many positions. The sampled token goes to the
GenerationSession, whose worker decodes it and may raise the stop flag
that ends the loop early.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import torch

from cadence.infer.emitter import GenerationListener
from cadence.infer.sampling import Sampler, temperature_scaled_softmax
from cadence.infer.session import GenerationSession

if TYPE_CHECKING:
    from cadence.model.llama import Llama

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOutput:
    """Result of one generation call.

    tokens counts the tokens produced before any stop token; elapsed is
    the wall time in seconds spent generating and decoding.
    """

    tokens: int
    elapsed: float

    @property
    def tokens_per_second(self) -> float:
        return self.tokens / self.elapsed if self.elapsed > 0 else 0.0


@torch.inference_mode()
def generate(
    model: "Llama",
    prompt: str,
    *,
    sample_len: int,
    temperature: float,
    sampler: Sampler,
    listener: GenerationListener,
) -> GenerationOutput:
    """Generate up to sample_len tokens after prompt.

    Raises MaxSequenceLengthExceeded when the prompt alone does not fit
    the cache window.
    """
    if sample_len <= 0:
        raise ValueError(f"sample_len must be positive, got {sample_len}")
    input_tokens = model.tokenize(prompt)
    prompt_len = int(input_tokens.numel())
    if prompt_len == 0:
        raise ValueError("prompt encodes to zero tokens")

    session = GenerationSession(
        tokenizer=model.tokenizer,
        listener=listener,
        max_len=prompt_len + sample_len,
        device=model.device,
    )
    start = time.perf_counter()
    try:
        session.append_prompt(input_tokens)
        x = input_tokens
        for _ in range(sample_len):
            if session.should_stop():
                break

            step_len = int(x.numel())
            mask = model.cache.prepare(step_len)
            model.pos.prepare(step_len)

            logits = model.transformer(x.view(1, -1), model.cache, model.pos, mask)
            next_logits = logits[:, -1, :]
            if temperature > 0.0:
                next_logits = temperature_scaled_softmax(next_logits, temperature)

            session.update(sampler.sample(next_logits))
            x = session.tokens.last(1)
    finally:
        session.close()

    output = GenerationOutput(
        tokens=session.num_generated, elapsed=time.perf_counter() - start
    )
    logger.debug(
        "generated %d tokens from a %d-token prompt in %.3fs",
        output.tokens,
        prompt_len,
        output.elapsed,
    )
    return output
