import pytest

from mimap import alignments


class FakeAln:
    def __init__(self, qname, ref, seq="ACGTACGT", cigar="8M", pos=0, is_reverse=False, mapq=255):
        self.query_name = qname
        self.reference_name = ref
        self.query_sequence = seq
        self.cigarstring = cigar
        self.pos = pos
        self.is_reverse = is_reverse
        self.mapq = mapq


class FakeBam:
    def __init__(self, alns):
        self.alns = list(alns)
        self.closed = False
        self.yielded = 0

    def __iter__(self):
        for a in self.alns:
            self.yielded += 1
            yield a

    def close(self):
        self.closed = True


@pytest.fixture
def fake_bam(monkeypatch, tmp_path):
    """Register fake BAM contents under a real (empty) path."""
    opened = {}

    def fake_alignmentfile(path, mode):
        return opened[path]

    monkeypatch.setattr(alignments.bn, "AlignmentFile", fake_alignmentfile)

    def make(alns, name="sample.bam"):
        path = tmp_path / name
        path.touch()
        bam = FakeBam(alns)
        opened[str(path)] = bam
        return path, bam

    return make
