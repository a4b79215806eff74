"""Word count.

Builds the classic word count graph: two sources are merged, split into
words and counted by a composite transform. Nothing is executed; run

    pipegraph show examples/wordcount.py

to see the resulting tree.
"""

import pipegraph as pg


@pg.composite("CountWords")
def count_words(lines: pg.Artifact) -> pg.Artifact:
    words = lines | "ExtractWords" >> pg.Map(str.split)
    return words | "Sum" >> pg.Combine(sum)


def build(pipeline: pg.Pipeline) -> None:
    """Apply the word count transforms to `pipeline`."""
    first = pipeline.apply(pg.Create(["the quick brown fox"]), name="ReadFirst")
    second = pipeline.apply(pg.Create(["jumps over the lazy dog"]), name="ReadSecond")
    lines = (first, second) | pg.Flatten()
    counts = lines | count_words
    counts | "Format" >> pg.Map(str)


pipeline = pg.Pipeline()
build(pipeline)
