"""A pipeline whose transform names collide.

`pipegraph check examples/unstable_names.py` reports "Read2" and "Read3".
"""

import pipegraph as pg

pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="off"))

for source in ("a.txt", "b.txt", "c.txt"):
    pipeline.apply(pg.Create([source], label="Read"))
