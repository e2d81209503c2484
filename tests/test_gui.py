import pytest

from packetsniff.gui import main, permission_hint, rates
from packetsniff.models import StatsSnapshot


@pytest.mark.parametrize(
    "message",
    [
        "cannot open interface eth0: [Errno 1] Operation not permitted",
        "PERMISSION denied",
        "операция не позволена",
    ],
)
def test_permission_hint_added(message):
    hinted = permission_hint(message)
    assert hinted.startswith(message)
    assert "setcap cap_net_raw,cap_net_admin+eip" in hinted
    assert "sudo" in hinted


def test_permission_hint_leaves_other_errors():
    message = "No capture devices found"
    assert permission_hint(message) == message


def test_rates_without_start_uses_one_second():
    stats = StatsSnapshot(started_ts_usec=0, pkts_total=10, bytes_total=100)
    assert rates(stats, 123_456_789) == (stats.pkts_total, stats.bytes_total * 8.0)


def test_rates_non_positive_elapsed_uses_one_second():
    stats = StatsSnapshot(started_ts_usec=5_000_000, pkts_total=7, bytes_total=30)
    assert rates(stats, 5_000_000) == rates(stats, 6_000_000)
    assert rates(stats, 4_000_000) == rates(stats, 6_000_000)


def test_rates_scale_with_elapsed_time():
    stats = StatsSnapshot(started_ts_usec=1_000_000, pkts_total=50, bytes_total=4000)
    one_pps, one_bps = rates(stats, 2_000_000)
    two_pps, two_bps = rates(stats, 3_000_000)
    assert two_pps == pytest.approx(one_pps / 2)
    assert two_bps == pytest.approx(one_bps / 2)


def test_rates_bits_are_eight_times_bytes():
    stats = StatsSnapshot(started_ts_usec=1_000_000, pkts_total=3, bytes_total=3)
    pps, bps = rates(stats, 4_000_000)
    assert bps == pytest.approx(pps * 8)


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0


def test_main_rejects_unknown_option():
    with pytest.raises(SystemExit) as excinfo:
        main(["--bogus"])
    assert excinfo.value.code == 2