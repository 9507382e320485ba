"""The in-memory corpus of interesting inputs and its scheduling weights."""

from __future__ import annotations

import contextlib
import hashlib
import math
import os
from bisect import bisect_left
from dataclasses import dataclass, field
from itertools import accumulate
from typing import Iterable, Mapping, Optional, Union

from fuzzkit.rng import Random

__all__ = ["unit_hash", "InputInfo", "EntropicOptions", "InputCorpus"]

_UINT16_MASK = 0xFFFF


def unit_hash(unit: bytes) -> str:
    """Return the lower-case hexadecimal SHA-1 digest of ``unit``."""
    return hashlib.sha1(bytes(unit)).hexdigest()


@dataclass
class InputInfo:
    """One corpus element together with its statistics and energy."""

    unit: bytes = b""
    time_of_unit: int = 0  # microseconds
    sha1: bytes = b""
    # Number of features this input has and no smaller input has.
    num_features: int = 0
    num_executed_mutations: int = 0
    num_successful_mutations: int = 0
    never_reduce: bool = False
    may_delete_file: bool = False
    reduced: bool = False
    has_focus_function: bool = False
    num_focus_functions_hit: int = 0
    uniq_feature_set: list[int] = field(default_factory=list)
    data_flow_trace_for_focus_function: bytes = b""
    needs_energy_update: bool = False
    energy: float = 0.0
    sum_incidence: float = 0.0
    # (feature index, local frequency) pairs sorted by feature index.
    feature_freqs: list[tuple[int, int]] = field(default_factory=list)

    def _locate(self, idx: int) -> int:
        return bisect_left(self.feature_freqs, (idx, 0))

    def delete_feature_freq(self, idx: int) -> bool:
        """Remove feature ``idx`` from the local frequencies; True if it was there."""
        pos = self._locate(idx)
        if pos < len(self.feature_freqs) and self.feature_freqs[pos][0] == idx:
            del self.feature_freqs[pos]
            return True
        return False

    def update_energy(
        self,
        global_number_of_features: int,
        scale_per_exec_time: bool,
        average_unit_execution_time: int,
    ) -> None:
        """Recompute the entropy-based energy of this input."""
        self.energy = 0.0
        self.sum_incidence = 0.0

        # Add-one smoothing for locally discovered features.
        for _, freq in self.feature_freqs:
            local = float(freq + 1)
            self.energy -= local * math.log(local)
            self.sum_incidence += local

        # Locally undiscovered features contribute log(1) == 0 to the energy.
        self.sum_incidence += float(global_number_of_features - len(self.feature_freqs))

        # A single locally abundant feature.
        abundant = float(self.num_executed_mutations + 1)
        self.energy -= abundant * math.log(abundant)
        self.sum_incidence += abundant

        if self.sum_incidence != 0:
            self.energy = self.energy / self.sum_incidence + math.log(self.sum_incidence)

        if scale_per_exec_time:
            own = self.time_of_unit
            avg = average_unit_execution_time
            perf_score = 100
            if own > avg * 10:
                perf_score = 10
            elif own > avg * 4:
                perf_score = 25
            elif own > avg * 2:
                perf_score = 50
            elif own * 3 > avg * 4:
                perf_score = 75
            elif own * 4 < avg:
                perf_score = 300
            elif own * 3 < avg:
                perf_score = 200
            elif own * 2 < avg:
                perf_score = 150
            self.energy *= perf_score

    def update_feature_frequency(self, idx: int) -> None:
        """Increment the local frequency of feature ``idx``."""
        self.needs_energy_update = True
        pos = self._locate(idx)
        if pos < len(self.feature_freqs) and self.feature_freqs[pos][0] == idx:
            freq = self.feature_freqs[pos][1]
            self.feature_freqs[pos] = (idx, (freq + 1) & _UINT16_MASK)
        else:
            self.feature_freqs.insert(pos, (idx, 1))


@dataclass
class EntropicOptions:
    """Settings of the entropic power schedule."""

    enabled: bool = True
    number_of_rarest_features: int = 100
    feature_frequency_threshold: int = 0xFF
    scale_per_exec_time: bool = False


class InputCorpus:
    """Inputs that produced new coverage, with feature bookkeeping."""

    FEATURE_SET_SIZE = 1 << 21
    MAX_MUTATION_FACTOR = 20
    SPARSE_ENERGY_UPDATES = 100

    def __init__(self, output_corpus: str, entropic: EntropicOptions) -> None:
        self.output_corpus = output_corpus
        self.entropic = entropic
        self._inputs: list[InputInfo] = []
        self._hashes: set[str] = set()
        self._num_executed_mutations = 0
        self._num_added_features = 0
        self._num_updated_features = 0
        self._input_sizes_per_feature: dict[int, int] = {}
        self._smallest_element_per_feature: dict[int, int] = {}
        self._distribution_needs_update = True
        self._freq_of_most_abundant_rare_feature = 0
        self._global_feature_freqs: dict[int, int] = {}
        self._rare_features: list[int] = []
        self._is_rare_feature: set[int] = set()
        self._cumulative: list[float] = []

    # Simple queries.

    def __len__(self) -> int:
        return len(self._inputs)

    def __getitem__(self, idx: int) -> bytes:
        return self._inputs[idx].unit

    def size_in_bytes(self) -> int:
        return sum(len(info.unit) for info in self._inputs)

    def num_active_units(self) -> int:
        return sum(1 for info in self._inputs if info.unit)

    def max_input_size(self) -> int:
        return max((len(info.unit) for info in self._inputs), default=0)

    def increment_num_executed_mutations(self) -> None:
        self._num_executed_mutations += 1

    def num_inputs_that_touch_focus_function(self) -> int:
        return sum(1 for info in self._inputs if info.has_focus_function)

    def num_inputs_with_data_flow_trace(self) -> int:
        return sum(1 for info in self._inputs if info.data_flow_trace_for_focus_function)

    def num_features(self) -> int:
        return self._num_added_features

    def num_feature_updates(self) -> int:
        return self._num_updated_features

    def has_unit(self, unit: Union[bytes, str]) -> bool:
        """Whether an input with this content (or this SHA-1 hex digest) is present."""
        key = unit if isinstance(unit, str) else unit_hash(unit)
        return key in self._hashes

    # Adding and changing inputs.

    def add_to_corpus(
        self,
        unit: bytes,
        num_features: int,
        may_delete_file: bool = False,
        has_focus_function: bool = False,
        never_reduce: bool = False,
        time_of_unit: int = 0,
        feature_set: Iterable[int] = (),
        data_flow_traces: Optional[Mapping[str, bytes]] = None,
        base_input: Optional[InputInfo] = None,
        num_focus_functions_hit: int = 0,
    ) -> InputInfo:
        """Append a new input and return its record."""
        unit = bytes(unit)
        if not unit:
            raise ValueError("cannot add an empty unit to the corpus")
        rare_count = len(self._rare_features)
        info = InputInfo(
            unit=unit,
            time_of_unit=time_of_unit,
            sha1=hashlib.sha1(unit).digest(),
            num_features=num_features,
            never_reduce=never_reduce,
            may_delete_file=may_delete_file,
            has_focus_function=has_focus_function,
            num_focus_functions_hit=num_focus_functions_hit,
            uniq_feature_set=sorted(feature_set),
            # Fresh seeds get maximal energy.
            energy=math.log(rare_count) if rare_count else 1.0,
            sum_incidence=float(rare_count),
        )
        self._inputs.append(info)
        sha1_hex = info.sha1.hex()
        self._hashes.add(sha1_hex)
        if has_focus_function and data_flow_traces is not None:
            trace = data_flow_traces.get(sha1_hex)
            if trace is not None:
                info.data_flow_trace_for_focus_function = bytes(trace)
        # Without a trace of its own, borrow the one of the input it came from.
        if not info.data_flow_trace_for_focus_function and base_input is not None:
            info.data_flow_trace_for_focus_function = base_input.data_flow_trace_for_focus_function
        self._distribution_needs_update = True
        return info

    def replace(self, info: InputInfo, unit: bytes, time_of_unit: int) -> None:
        """Replace the contents of ``info`` with the shorter ``unit``."""
        unit = bytes(unit)
        if len(info.unit) <= len(unit):
            raise ValueError("the replacement must be shorter than the original")
        self._hashes.discard(info.sha1.hex())
        self.delete_file(info)
        info.sha1 = hashlib.sha1(unit).digest()
        self._hashes.add(info.sha1.hex())
        info.unit = unit
        info.reduced = True
        info.time_of_unit = time_of_unit
        self._distribution_needs_update = True

    def delete_file(self, info: InputInfo) -> None:
        """Remove the on-disk copy of ``info`` from the output corpus, if allowed."""
        if self.output_corpus and info.may_delete_file:
            with contextlib.suppress(OSError):
                os.remove(os.path.join(self.output_corpus, info.sha1.hex()))

    def delete_input(self, idx: int) -> None:
        """Evict the input at ``idx``, keeping its slot with empty contents."""
        info = self._inputs[idx]
        self.delete_file(info)
        info.unit = b""
        info.energy = 0.0
        info.needs_energy_update = False
        self._distribution_needs_update = True

    # Features.

    def add_rare_feature(self, idx: int) -> None:
        """Track ``idx`` as a rare feature, pruning the most abundant ones first."""
        freqs = self._global_feature_freqs
        while (
            len(self._rare_features) > self.entropic.number_of_rarest_features
            and self._freq_of_most_abundant_rare_feature
            > self.entropic.feature_frequency_threshold
        ):
            most = [self._rare_features[0], self._rare_features[0]]
            delete = 0
            for pos, candidate in enumerate(self._rare_features):
                if freqs.get(candidate, 0) >= freqs.get(most[0], 0):
                    most[1] = most[0]
                    most[0] = candidate
                    delete = pos

            self._is_rare_feature.discard(delete)
            self._rare_features[delete] = self._rare_features[-1]
            self._rare_features.pop()

            for info in self._inputs:
                if info.delete_feature_freq(most[0]):
                    info.needs_energy_update = True

            self._freq_of_most_abundant_rare_feature = freqs.get(most[1], 0)

        self._rare_features.append(idx)
        self._is_rare_feature.add(idx)
        freqs[idx] = 0
        for info in self._inputs:
            info.delete_feature_freq(idx)
            # Add-one smoothing for this locally undiscovered feature;
            # zero-energy seeds stay at zero.
            if info.energy > 0.0:
                info.sum_incidence += 1
                info.energy += math.log(info.sum_incidence) / info.sum_incidence

        self._distribution_needs_update = True

    def add_feature(self, idx: int, new_size: int, shrink: bool) -> bool:
        """Record that an input of ``new_size`` bytes, about to be added, has feature ``idx``.

        Returns True when the feature is new, or when ``shrink`` is set and the
        new input is smaller than the one holding the feature so far.
        """
        if not new_size:
            raise ValueError("new_size must be positive")
        idx %= self.FEATURE_SET_SIZE
        old_size = self._input_sizes_per_feature.get(idx, 0)
        if old_size == 0 or (shrink and old_size > new_size):
            if old_size > 0:
                old_idx = self._smallest_element_per_feature[idx]
                info = self._inputs[old_idx]
                if info.num_features <= 0:
                    raise RuntimeError("feature owner has no features left")
                info.num_features -= 1
                if info.num_features == 0:
                    self.delete_input(old_idx)
            else:
                self._num_added_features += 1
                if self.entropic.enabled:
                    self.add_rare_feature(idx)
            self._num_updated_features += 1
            self._smallest_element_per_feature[idx] = len(self._inputs)
            self._input_sizes_per_feature[idx] = new_size
            return True
        return False

    def update_feature_frequency(self, info: Optional[InputInfo], idx: int) -> None:
        """Increment the global and, for rare features, local frequency of ``idx``."""
        idx32 = idx % self.FEATURE_SET_SIZE
        freq = self._global_feature_freqs.get(idx32, 0)
        if freq == _UINT16_MASK:
            return
        self._global_feature_freqs[idx32] = freq + 1

        if freq > self._freq_of_most_abundant_rare_feature or idx32 not in self._is_rare_feature:
            return
        if freq == self._freq_of_most_abundant_rare_feature:
            self._freq_of_most_abundant_rare_feature += 1
        if info is not None:
            info.update_feature_frequency(idx32)

    # Scheduling.

    def choose_unit_to_mutate(self, rand: Random) -> InputInfo:
        return self._inputs[self.choose_unit_idx_to_mutate(rand)]

    def choose_unit_to_cross_over_with(self, rand: Random, uniform_dist: bool) -> InputInfo:
        if not uniform_dist:
            return self.choose_unit_to_mutate(rand)
        return self._inputs[rand.below(len(self._inputs))]

    def choose_unit_idx_to_mutate(self, rand: Random) -> int:
        """Pick an input index according to the current weights."""
        self._update_corpus_distribution(rand)
        p = rand.canonical()
        n = len(self._inputs)
        if not self._cumulative:
            return min(int(p * n), n - 1)
        return min(bisect_left(self._cumulative, p), n - 1)

    def _update_corpus_distribution(self, rand: Random) -> None:
        # Occasionally refresh even without structural changes, so that local
        # frequency changes are picked up.
        if not self._distribution_needs_update and (
            not self.entropic.enabled or rand.below(self.SPARSE_ENERGY_UPDATES)
        ):
            return
        self._distribution_needs_update = False

        n = len(self._inputs)
        if not n:
            raise IndexError("the corpus is empty")
        average_time = sum(info.time_of_unit for info in self._inputs) // n
        weights = [0.0] * n

        vanilla = True
        if self.entropic.enabled:
            for info in self._inputs:
                if info.needs_energy_update and info.energy != 0.0:
                    info.needs_energy_update = False
                    info.update_energy(
                        len(self._rare_features),
                        self.entropic.scale_per_exec_time,
                        average_time,
                    )
            mean_mutations = self._num_executed_mutations // n
            for i, info in enumerate(self._inputs):
                if info.num_features == 0:
                    weights[i] = 0.0
                elif info.num_executed_mutations // self.MAX_MUTATION_FACTOR > mean_mutations:
                    weights[i] = 0.0
                else:
                    weights[i] = info.energy
                if weights[i] > 0.0:
                    vanilla = False

        if vanilla:
            for i, info in enumerate(self._inputs):
                if not info.num_features:
                    weights[i] = 0.0
                    continue
                base = float(i + 1)
                if info.num_focus_functions_hit > 0:
                    base *= 1 << info.num_focus_functions_hit
                elif info.has_focus_function:
                    base *= 1000
                weights[i] = base

        total = sum(weights)
        if total > 0.0:
            cumulative = list(accumulate(w / total for w in weights))
            cumulative[-1] = 1.0
            self._cumulative = cumulative
        else:
            self._cumulative = []

    # Reporting.

    def format_stats(self) -> str:
        """One line per input with its size and mutation statistics."""
        return "".join(
            f"  [{i: 3d} {info.sha1.hex()}] sz: {len(info.unit): 5d} "
            f"runs: {info.num_executed_mutations: 5d} "
            f"succ: {info.num_successful_mutations: 5d} "
            f"focus: {int(info.has_focus_function)} "
            f"focusN: {info.num_focus_functions_hit}\n"
            for i, info in enumerate(self._inputs)
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(inputs={len(self._inputs)})"