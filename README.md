# fuzzkit

Pure-Python building blocks for coverage-guided fuzzing. It has no
dependencies outside the standard library.

## Modules

- `fuzzkit.data_provider.FuzzedDataProvider` splits one byte string into
  typed values. Byte strings (`consume_bytes`,
  `consume_bytes_with_terminator`, `consume_remaining_bytes`,
  `consume_bytes_as_string`, `consume_random_length_string`,
  `consume_remaining_bytes_as_string`, `consume_into`) are taken from the
  front of the data. Integers (`consume_integral`,
  `consume_integral_in_range`), booleans (`consume_bool`), enum members
  (`consume_enum`), picks from a sequence (`pick_value_in_array`) and floats
  (`consume_probability`, `consume_floating_point`,
  `consume_floating_point_in_range`) are taken from the back. The same input
  always gives the same values when the same calls are made in the same
  order; when the data runs out, integers and floats fall back to the low end
  of their range.
- `fuzzkit.corpus.InputCorpus` holds the inputs found so far as `InputInfo`
  records, tracks which input is the smallest one holding each feature
  (`add_feature`), and chooses the next input to mutate
  (`choose_unit_idx_to_mutate`, `choose_unit_to_mutate`,
  `choose_unit_to_cross_over_with`) with a `fuzzkit.rng.Random`. Weights come
  either from a plain schedule that favours later inputs and inputs hitting
  focus functions, or, when `EntropicOptions.enabled` is set, from the
  entropic power schedule, which favours inputs that show rare features.
  `unit_hash` gives the SHA-1 hex digest used to recognise inputs.
- `fuzzkit.merge.Merger` parses a merge control file (`parse`, raising
  `ControlFileError` when it is malformed) and decides which inputs outside
  the first corpus add features it lacks, returning a `MergeResult`.
  `merge` is a greedy pass that prefers small inputs, then inputs with more
  features; `set_cover_merge` approximates a smallest set of inputs covering
  all features. `write_new_control_file` writes a fresh control file listing
  the files of an old and a new corpus.
- `fuzzkit.command.Command` holds a command line whose arguments and
  `-flag=value` flags can be changed only up to `-ignore_remaining_args=1`,
  plus an output file and stderr redirection; `str()` renders it.
- `fuzzkit.dictionary` provides `Word` (at most 64 bytes), `DictionaryEntry`
  (a word with an optional position hint and use/success counters) and
  `Dictionary` (a list bounded at 16384 entries).
- `fuzzkit.rng.Random` is a minimal-standard linear congruential generator
  (multiplier 48271).
- `fuzzkit.value_bit_map.ValueBitMap` is a fixed map of 65536 bits addressed
  by values reduced modulo the map size.
- `fuzzkit.bits` provides `bswap`, `clz64` and `popcount64`.
- `fuzzkit.options.FuzzingOptions` is a dataclass of fuzzer settings and
  their defaults.

## Installing

```
pip install .
```

## Examples

```python
import enum

from fuzzkit.data_provider import FuzzedDataProvider


class Colour(enum.Enum):
    RED = 0
    GREEN = 1
    BLUE = 2


def target(data: bytes) -> None:
    provider = FuzzedDataProvider(data)
    count = provider.consume_integral_in_range(1, 10, 4)
    colour = provider.consume_enum(Colour)
    name = provider.consume_random_length_string(16)
    rest = provider.consume_remaining_bytes()
    ...
```

Merging from a finished control file:

```python
from fuzzkit.merge import Merger

control_text = (
    "3\n1\nA\nB\nC\n"
    "STARTED 0 1000\nFT 0 1 2 3\n"
    "STARTED 1 1001\nFT 1 4 5 6\n"
    "STARTED 2 1002\nFT 2 6 1 3\n"
)
merger = Merger()
merger.parse(control_text, True)
result = merger.merge(set(), set())
print(result.new_files, sorted(result.new_features))  # ['B'] [4, 5, 6]
```

## What it does not do

fuzzkit is a library of parts, not a fuzzer. It has no command-line tool, no
fuzzing loop, no mutation engine, and no way to instrument code or collect
coverage. Merging works only on control files that already hold the `FT` and
`COV` lines; nothing in the package runs inputs to produce them.
`FuzzingOptions` only holds settings; nothing in the package acts on them.

## Running the tests

```
pip install .[test]
pytest
```