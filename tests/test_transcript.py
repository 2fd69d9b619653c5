from bedside.transcript import TranscriptBuffer


def test_interim_revisions_are_not_double_counted():
    buf = TranscriptBuffer()
    buf.add_interim("r1", "how are")
    buf.add_interim("r1", "how are you")
    assert buf.committed == ""
    assert buf.interim == "how are you"
    buf.add_final("r1", "How are you?")
    assert buf.committed == "How are you?"
    assert buf.interim == ""
    assert buf.live == "How are you?"


def test_live_text_appends_pending_interim():
    buf = TranscriptBuffer()
    buf.add_final("r1", "The kids are well.")
    buf.add_interim("r2", "We went to")
    assert buf.live == "The kids are well. We went to"
    assert buf.snapshot() == "The kids are well."


def test_snapshot_falls_back_to_interim():
    buf = TranscriptBuffer()
    buf.add_interim("r1", "only provisional words")
    assert buf.snapshot() == "only provisional words"


def test_promote_interim_commits_leftovers():
    buf = TranscriptBuffer()
    buf.add_final("r1", "first")
    buf.add_interim("r2", "second")
    buf.promote_interim()
    assert buf.committed == "first second"
    assert buf.interim == ""


def test_blank_results_are_ignored_and_clear_empties():
    buf = TranscriptBuffer()
    buf.add_final("r1", "   ")
    buf.add_interim("r2", "x")
    buf.add_interim("r2", "")
    assert buf.live == ""
    buf.add_final("r3", "kept")
    buf.clear()
    assert buf.snapshot() == ""
