import sys
import os
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import main


def test_positional_audio_is_stream_shorthand():
    with patch("pipeline.run_session", return_value=0) as run:
        assert main.main(["bed.mp3"]) == 0
    assert run.call_args.kwargs["audio"] == "bed.mp3"
    assert run.call_args.kwargs["sink_mode"] is None


def test_no_arguments_streams_without_audio():
    with patch("pipeline.run_session", return_value=0) as run:
        main.main([])
    assert run.call_args.kwargs["audio"] is None
    assert run.call_args.kwargs["realtime"] is None


def test_stream_flags():
    with patch("pipeline.run_session", return_value=7) as run:
        status = main.main(["stream", "--sink", "remote", "--bandwidth-test",
                            "--format", "h264", "--no-realtime", "my bed.mp3"])
    assert status == 7
    kwargs = run.call_args.kwargs
    assert kwargs["sink_mode"] == "remote"
    assert kwargs["bandwidth_test"] is True
    assert kwargs["producer_format"] == "h264"
    assert kwargs["realtime"] is False
    assert kwargs["audio"] == "my bed.mp3"


def test_flags_without_subcommand():
    with patch("pipeline.run_session", return_value=0) as run:
        main.main(["--sink", "both"])
    assert run.call_args.kwargs["sink_mode"] == "both"
