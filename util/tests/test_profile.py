import util.profile as profile


def test_timers(capsys):
    tc = profile.TimerCollection()

    a = tc.timer("evolve")
    a.begin()

    b = tc.timer("projection")
    b.begin()
    b.end()

    a.end()

    # the same name gives back the same timer
    assert tc.timer("evolve") is a

    assert b.stack_count == 1
    assert a.stack_count == 0
    assert not a.is_running
    assert a.elapsed_time >= b.elapsed_time >= 0.0

    tc.report()
    out = capsys.readouterr().out
    assert "evolve: " in out
    assert "   projection: " in out
