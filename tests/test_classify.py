import pytest

from conftest import FakeAln
from mimap import classify as classify_module
from mimap.classify import ReadGroupTally, bucket_for, classify, count_alignments, origin_of
from mimap.miMapClasses import AlignmentRecord, ClassificationResult, ClassifyConfig, ConfigError


def _rec(read_id, ref, cigar="5M"):
    return AlignmentRecord(reference_name=ref, read_id=read_id, query_sequence="ACGTA",
                           cigar_is_empty=(cigar == ""), position=0, strand="+", quality=255)


def test_scenario_single_both_and_unmapped():
    records = [
        _rec("R1", "chr1_mmu-mir-1"),
        _rec("R1", "phiX"),
        _rec("R2", "chr2_mmu-mir-2", cigar=""),
    ]
    result = classify(records, ClassifyConfig(host_pattern="^chr", para_pattern="^phiX"))
    assert result.mapped == 2
    assert result.single_both == 2
    assert result.unmapped == 1
    assert result.unmapped_count == 1
    assert result.multi_count == 1
    assert result.weighted_total() == result.mapped


@pytest.mark.parametrize(
    "host,para,bucket",
    [
        (0, 1, "single_para"),
        (0, 3, "multi_para"),
        (1, 0, "single_host"),
        (1, 1, "single_both"),
        (1, 2, "single_host_multi_para"),
        (2, 0, "multi_host"),
        (3, 1, "single_para_multi_host"),
        (2, 2, "multi_both"),
    ],
)
def test_decision_table(host, para, bucket):
    assert bucket_for(host, para) == bucket
    records = [_rec("R", "Tc1") for _ in range(para)] + [_rec("R", "chrA") for _ in range(host)]
    result = classify(records, ClassifyConfig(para_pattern="^Tc"))
    assert getattr(result, bucket) == host + para
    assert result.weighted_total() == host + para


def test_zero_both_and_unexpected():
    assert bucket_for(0, 0) == "zero_both"
    assert bucket_for(-1, 0) == "unexpected"


def test_host_pattern_only():
    config = ClassifyConfig(host_pattern="^chr")
    assert origin_of("chr3", config) == "host"
    assert origin_of("TcChr1", config) == "para"


def test_para_pattern_wins_when_both_given():
    config = ClassifyConfig(host_pattern="^Tc", para_pattern="^Tc")
    assert origin_of("TcChr1", config) == "para"
    assert origin_of("chr1", config) == "host"


def test_missing_patterns_is_config_error():
    with pytest.raises(ConfigError):
        ClassifyConfig()
    with pytest.raises(ConfigError):
        ClassifyConfig(para_pattern="[unclosed")


def test_final_group_is_flushed_and_groups_not_resorted():
    records = [
        _rec("A", "chr1"),
        _rec("B", "Tc1"),
        _rec("B", "Tc2"),
        _rec("A", "chr2"),
    ]
    result = classify(records, ClassifyConfig(para_pattern="^Tc"))
    # A appears twice, split into two single-host groups
    assert result.single_host == 2
    assert result.multi_para == 2
    assert result.single_count == 2
    assert result.multi_count == 1
    assert result.weighted_total() == result.mapped == 4


def test_unmapped_record_does_not_break_group():
    records = [_rec("A", "chr1"), _rec("X", None, cigar=""), _rec("A", "chr2")]
    result = classify(records, ClassifyConfig(para_pattern="^Tc"))
    assert result.multi_host == 2
    assert result.multi_count == 1
    assert result.unmapped == 1


def test_tally_states():
    tally = ReadGroupTally()
    assert not tally.active
    tally.feed("R1", "host")
    assert tally.active and tally.read_id == "R1"
    tally.feed("R2", "para")
    assert tally.result.single_host == 1
    assert tally.counts == {"host": 0, "para": 1}
    result = tally.finish()
    assert result.single_para == 1
    assert not tally.active
    # Nothing pending: a second finish changes nothing
    assert tally.finish().as_dict() == result.as_dict()


def test_negative_counter_is_assertion():
    result = ClassificationResult()
    with pytest.raises(AssertionError):
        result.bump("mapped", -1)


def test_count_alignments_writes_report(fake_bam, tmp_path):
    path, bam = fake_bam([
        FakeAln("r1", "chr1"),
        FakeAln("r1", "TcChr2"),
        FakeAln("r2", "TcChr3"),
        FakeAln("r3", None, cigar=None),
        FakeAln("r4", "chr2"),
        FakeAln("r4", "chr5"),
    ], name="host_para.bam")
    result = count_alignments(path, ClassifyConfig(para_pattern="^Tc"))
    assert bam.closed
    assert result.mapped == 5
    assert result.unmapped == 1
    assert result.single_both == 2
    assert result.single_para == 1
    assert result.multi_host == 2
    report = tmp_path / "host_para.bam.out"
    text = report.read_text()
    assert "Mapped: 5\n" in text
    assert "DANGER Single-both: 2\n" in text


def test_count_alignments_reports_progress(fake_bam, tmp_path, monkeypatch):
    monkeypatch.setattr(classify_module, "PROGRESS_EVERY", 2)
    path, _ = fake_bam([FakeAln(f"r{i}", "chr1") for i in range(5)], name="many.bam")
    count_alignments(path, ClassifyConfig(para_pattern="^Tc"))
    lines = (tmp_path / "many.bam.out").read_text().splitlines()
    assert "Finished 2 alignments." in lines
    assert "Finished 4 alignments." in lines
