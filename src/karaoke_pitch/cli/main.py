"""
Command-line interface for the karaoke pitch system.

Provides commands for:
- Building reference pitch tracks for songs
- Inspecting and cleaning stored references
- Singing along with live pitch scoring
- Managing configuration
- Listing audio devices
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click

from karaoke_pitch.core.errors import InvalidConfig
from karaoke_pitch.utils.config import Config, get_config, set_config

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to config file",
)
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], debug: bool) -> None:
    """Karaoke Pitch - live pitch detection and reference comparison."""
    ctx.ensure_object(dict)

    # Load configuration
    if config:
        cfg = Config.from_file(Path(config))
    else:
        cfg = get_config()

    try:
        cfg.validate()
    except InvalidConfig as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(2)

    cfg.debug = debug
    set_config(cfg)
    ctx.obj["config"] = cfg

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")


def _analyzer(cfg: Config):
    from karaoke_pitch.core.analysis import SongAnalyzer
    from karaoke_pitch.core.reference import ReferenceStore, ReferenceTrackBuilder

    return SongAnalyzer(
        songs_dir=cfg.paths.songs_dir,
        store=ReferenceStore(cfg.paths.references_dir),
        builder=ReferenceTrackBuilder(**cfg.reference.builder_kwargs()),
    )


def _load_reference(cfg: Config, song: str):
    from karaoke_pitch.core.errors import DecodeError
    from karaoke_pitch.core.reference import ReferenceStore

    try:
        track = ReferenceStore(cfg.paths.references_dir).load(song)
    except DecodeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if track is None:
        click.echo(f"Error: no reference for {song}. Run 'karaoke-pitch analyze' first.", err=True)
        sys.exit(1)
    return track


@cli.command()
@click.argument("song")
@click.option("--force/--no-force", default=False, help="Rebuild an existing reference")
@click.pass_context
def analyze(ctx: click.Context, song: str, force: bool) -> None:
    """Build the reference pitch track for SONG (a file in the songs directory)."""
    cfg = ctx.obj["config"]
    analyzer = _analyzer(cfg)

    try:
        click.echo(f"Analyzing {song}...")
        outcome = analyzer.analyze(song, force=force)
    finally:
        analyzer.shutdown()

    if not outcome.ok:
        click.echo(f"Error ({outcome.error_kind}): {outcome.message}", err=True)
        sys.exit(1)

    verb = "Reused" if outcome.reused else "Generated"
    click.echo(f"{verb} reference: {outcome.ref_path}")


@cli.command("analyze-all")
@click.option("--force/--no-force", default=False, help="Rebuild existing references")
@click.pass_context
def analyze_all(ctx: click.Context, force: bool) -> None:
    """Build reference tracks for every song in the songs directory."""
    cfg = ctx.obj["config"]
    analyzer = _analyzer(cfg)

    songs = analyzer.list_songs()
    if not songs:
        click.echo(f"No audio files found in {cfg.paths.songs_dir}", err=True)
        analyzer.shutdown()
        sys.exit(1)

    click.echo(f"Found {len(songs)} songs")
    failures = 0
    try:
        futures = [analyzer.submit(song, force=force) for song in songs]
        with click.progressbar(futures, label="Analyzing") as pending:
            for future in pending:
                outcome = future.result()
                if not outcome.ok:
                    failures += 1
                    logger.error(f"{outcome.song}: {outcome.error_kind}: {outcome.message}")
    finally:
        analyzer.shutdown()

    click.echo(f"\nDone: {len(songs) - failures} ok, {failures} failed")
    if failures:
        sys.exit(1)


@cli.command()
@click.argument("song")
@click.pass_context
def show(ctx: click.Context, song: str) -> None:
    """Show statistics of a stored reference."""
    from karaoke_pitch.utils.audio import format_time, hz_to_note

    cfg = ctx.obj["config"]
    track = _load_reference(cfg, song)
    s = track.stats()

    click.echo(f"Reference: {song}")
    click.echo("-" * 40)
    click.echo(f"Points: {s['count']}")
    if s["count"] == 0:
        return

    click.echo(f"Duration: {format_time(s['duration_seconds'])}")
    click.echo(f"Voiced: {s['voiced_points']} ({s['voiced_ratio']:.1%})")
    click.echo(f"Mean RMS: {s['mean_rms']:.4f}")
    if s["voiced_points"]:
        click.echo(
            f"Range: {s['min_hz']:.1f}Hz ({hz_to_note(s['min_hz'])}) - "
            f"{s['max_hz']:.1f}Hz ({hz_to_note(s['max_hz'])})"
        )
        click.echo(f"Median: {s['median_hz']:.1f}Hz ({hz_to_note(s['median_hz'])})")

    offset = cfg.delays().offset_for(song)
    if offset:
        click.echo(f"Manual offset: {offset:.2f}s")


@cli.command()
@click.argument("song")
@click.option("--output", "-o", type=click.Path(), help="Output file for the cleaned track")
@click.option("--min-hz", type=float, default=80.0, show_default=True)
@click.option("--max-hz", type=float, default=1200.0, show_default=True)
@click.option("--max-jump", type=float, default=200.0, show_default=True, help="Largest allowed jump in Hz")
@click.pass_context
def clean(
    ctx: click.Context,
    song: str,
    output: Optional[str],
    min_hz: float,
    max_hz: float,
    max_jump: float,
) -> None:
    """Write a copy of a reference with spikes and noise removed."""
    from karaoke_pitch.core.reference import clean_track

    cfg = ctx.obj["config"]
    track = _load_reference(cfg, song)
    cleaned = clean_track(track, min_hz=min_hz, max_hz=max_hz, max_jump_hz=max_jump)

    out_path = Path(output) if output else cfg.paths.references_dir / f"{track.song}_clean.json"
    out_path.write_text(cleaned.to_json())
    click.echo(f"Cleaned {len(track)} -> {len(cleaned)} points: {out_path}")


@cli.command()
@click.argument("song")
@click.option("--at", "at_time", type=float, required=True, help="Playback time in seconds")
@click.option(
    "--policy",
    type=click.Choice(["step", "linear"]),
    help="Interpolation policy (default from config)",
)
@click.pass_context
def expected(ctx: click.Context, song: str, at_time: float, policy: Optional[str]) -> None:
    """Print the expected pitch of SONG at a playback time."""
    from karaoke_pitch.core.comparator import InterpolationPolicy, LiveComparator
    from karaoke_pitch.utils.audio import hz_to_note

    cfg = ctx.obj["config"]
    track = _load_reference(cfg, song)
    comparator = LiveComparator(
        track=track,
        offset_seconds=cfg.delays().offset_for(song),
        policy=InterpolationPolicy(policy or cfg.comparator.interpolation),
        smoothing_alpha=cfg.comparator.smoothing_alpha,
    )

    if not comparator.is_synchronized(at_time):
        click.echo(f"{at_time:.2f}s: not synchronized (offset {comparator.offset_seconds:.2f}s)")
        return

    hz = comparator.expected_at(at_time)
    if hz is None:
        click.echo(f"{at_time:.2f}s: no expected pitch")
    else:
        click.echo(f"{at_time:.2f}s: {hz:.2f}Hz ({hz_to_note(hz)})")


@cli.command()
@click.argument("song")
@click.option("--duration", "-t", type=float, default=60.0, help="Session length in seconds")
@click.option("--device", "-i", type=int, help="Audio input device index")
@click.option("--no-playback", is_flag=True, help="Do not play the song (use elapsed time)")
@click.pass_context
def sing(
    ctx: click.Context,
    song: str,
    duration: float,
    device: Optional[int],
    no_playback: bool,
) -> None:
    """Sing along to SONG with live pitch scoring."""
    from karaoke_pitch.core.comparator import InterpolationPolicy, ScoringMode
    from karaoke_pitch.core.pitch import PitchDetector
    from karaoke_pitch.core.playback import AudioPlayer
    from karaoke_pitch.core.recorder import DisplayThrottle, LivePitchTracker, MicrophoneStream
    from karaoke_pitch.core.reference import ReferenceStore
    from karaoke_pitch.core.session import RecordingTransport, Role, SyncState
    from karaoke_pitch.core.smoothing import PitchSmoother, ResetPolicy
    from karaoke_pitch.utils.audio import hz_to_note

    cfg = ctx.obj["config"]
    detector = PitchDetector(**cfg.detector.detector_kwargs())
    smoother = PitchSmoother(
        alpha=cfg.smoothing.alpha,
        decay=cfg.smoothing.decay,
        min_hz=detector.min_hz,
        policy=ResetPolicy(cfg.smoothing.policy),
    )

    session = SyncState(
        user=cfg.session.user,
        role=Role(cfg.session.role),
        store=ReferenceStore(cfg.paths.references_dir),
        transport=RecordingTransport(),
        delays=cfg.delays(),
        smoother=smoother,
        policy=InterpolationPolicy(cfg.comparator.interpolation),
        mode=ScoringMode(cfg.comparator.scoring),
        tolerance_hz=cfg.comparator.tolerance_hz,
        lead_in_seconds=cfg.session.lead_in_seconds,
        smoothing_alpha=cfg.comparator.smoothing_alpha,
    )
    session.select_song(song)
    if not session.comparator.has_reference:
        click.echo("No reference loaded: showing pitch only.")

    player = None
    if not no_playback:
        player = AudioPlayer()
        if session.playback_delay:
            time.sleep(session.playback_delay)
        if not player.play(cfg.paths.songs_dir / song):
            click.echo("Playback unavailable, using elapsed time.", err=True)
            player = None

    tracker = LivePitchTracker(detector=detector, smoother=smoother)
    throttle = DisplayThrottle(cfg.session.display_rate)
    mic = MicrophoneStream(
        sample_rate=detector.sample_rate,
        block_size=detector.frame_size,
        device_index=device if device is not None else cfg.detector.input_device_index,
    )
    scores = []

    def on_pitch(elapsed: float, hz: Optional[float]) -> bool:
        session.publish_pitch(hz)
        if not throttle.ready():
            return False

        t = player.get_position() if player else elapsed
        result = session.comparator.compare(t, hz)
        if result.precision is not None:
            scores.append(result.precision)

        live = f"{hz:7.1f}Hz {hz_to_note(hz):>4}" if hz else "    ---        "
        if not result.synchronized:
            target = "waiting"
        elif result.expected_hz is None:
            target = "---"
        else:
            target = f"{result.expected_hz:7.1f}Hz"
        line = f"\r{t:6.1f}s  live {live}  ref {target:>9}"
        if result.precision is not None:
            line += f"  {result.precision:4.0%}"
            if result.state is not None:
                line += f" {result.state.value}"
        click.echo(line.ljust(72), nl=False)
        return False

    click.echo("Sing! Press Ctrl+C to stop")
    try:
        mic.run(duration, tracker, on_pitch=on_pitch)
    except KeyboardInterrupt:
        click.echo("\nStopped")
    finally:
        if player:
            player.stop()
        session.close()

    click.echo()
    if scores:
        click.echo(f"Average precision: {sum(scores) / len(scores):.1%} over {len(scores)} ticks")


@cli.command("test-mic")
@click.option("--duration", "-t", type=float, default=8.0, help="Recording duration in seconds")
@click.option("--device", "-i", type=int, help="Audio input device index")
@click.pass_context
def test_mic(ctx: click.Context, duration: float, device: Optional[int]) -> None:
    """Test microphone input and pitch detection."""
    from karaoke_pitch.core.pitch import PitchDetector
    from karaoke_pitch.core.recorder import LivePitchTracker, MicrophoneStream
    from karaoke_pitch.utils.audio import hz_to_note

    cfg = ctx.obj["config"]
    device_idx = device if device is not None else cfg.detector.input_device_index

    click.echo(f"Testing microphone (device {device_idx}) for {duration}s...")
    click.echo("Sing or play something!")
    click.echo("-" * 40)

    detector = PitchDetector(**cfg.detector.detector_kwargs())
    tracker = LivePitchTracker(detector=detector)
    mic = MicrophoneStream(
        sample_rate=detector.sample_rate,
        block_size=detector.frame_size,
        device_index=device_idx,
    )
    voiced = 0

    def on_pitch(elapsed: float, hz: Optional[float]) -> bool:
        nonlocal voiced
        if hz is not None:
            voiced += 1
            click.echo(f"  {elapsed:5.1f}s  {hz:7.1f} Hz  ({hz_to_note(hz)})")
        return False

    blocks = mic.run(duration, tracker, on_pitch=on_pitch)
    click.echo("-" * 40)
    click.echo(f"Processed {blocks} blocks, {voiced} with pitch")


@cli.command()
def devices() -> None:
    """List available audio input devices."""
    from karaoke_pitch.utils.audio import list_audio_devices

    devices = list_audio_devices()

    if not devices:
        click.echo("No audio devices found")
        return

    click.echo("Available audio devices:")
    click.echo("-" * 50)

    for device in devices:
        if device.is_input:
            click.echo(f"  [{device.index}] {device.name}")
            click.echo(f"      Sample rate: {device.default_sample_rate}Hz")


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="config.json",
    help="Output config file path",
)
def init_config(output: str) -> None:
    """Generate a default configuration file."""
    cfg = Config()
    cfg.save(output)
    click.echo(f"Configuration saved to {output}")
    click.echo("Edit this file to customize settings.")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
