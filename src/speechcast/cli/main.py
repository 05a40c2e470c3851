"""CLI entry point for SpeechCast."""

import logging
import sys
import threading

import click

from speechcast import __version__

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
def main():
    """SpeechCast: speak text through a synthesis voice or an external program."""
    pass


def _load_config(config):
    from speechcast.core.config import AppConfig
    from speechcast.core.logging import setup_logging

    try:
        app_config = AppConfig.load(config_path=config)
    except Exception as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    log_cfg = app_config.logging
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file", "speechcast.log"),
    )
    return app_config


@main.command()
@click.option("--config", "-c", default=None, help="Path to custom config YAML")
def voices(config):
    """List installed synthesis voices."""
    from speechcast.factory import create_speaker

    speaker = create_speaker(_load_config(config), apply_defaults=False)
    try:
        if not len(speaker.voices):
            click.echo("No synthesis voices found.")
            return
        for i, voice in enumerate(speaker.voices):
            langs = ", ".join(voice.languages) or "-"
            click.echo(f"{i:>3}  {voice.name}  [{langs}]")
            click.echo(f"     {voice.id}")
    finally:
        speaker.shutdown()


@main.command()
@click.argument("path")
@click.option("--no-launch", is_flag=True,
              help="Only resolve the program, do not launch it")
def probe(path, no_launch):
    """Check that an external speech program can be started."""
    from speechcast.backends.process import ProcessAdapter

    adapter = ProcessAdapter(probe_launch=not no_launch)
    if adapter.validate(path):
        click.echo(f"OK: {path}")
    else:
        click.echo(f"FAIL: cannot start {path}", err=True)
        sys.exit(1)


@main.command()
@click.argument("text")
@click.option("--voice", "-v", default=None, help="Voice id, name or index")
@click.option("--program", "-p", default=None, help="External speech program")
@click.option("--config", "-c", default=None, help="Path to custom config YAML")
def say(text, voice, program, config):
    """Speak TEXT and print progress until it ends (Ctrl-C cancels)."""
    from speechcast.core.events import SpeakingEnd, SpokenSentence
    from speechcast.core.exceptions import SpeechcastError
    from speechcast.core.state import BackendKind
    from speechcast.factory import create_speaker

    app_config = _load_config(config)
    speaker = create_speaker(app_config, apply_defaults=not (voice or program))
    done = threading.Event()

    def on_event(event):
        if isinstance(event, SpokenSentence):
            click.echo(f"> {event.text}")
        elif isinstance(event, SpeakingEnd):
            click.echo("[canceled]" if event.canceled else "[done]")
            done.set()

    speaker.subscribe(on_event)
    try:
        if program:
            speaker.select_external_program(program)
        elif voice:
            found = speaker.voices.find(voice)
            speaker.select_voice(found if found is not None else voice)

        if speaker.backend is BackendKind.NONE:
            click.echo("No backend selected: pass --voice or --program.", err=True)
            sys.exit(1)

        if not speaker.speak_sentence(text):
            click.echo("Nothing to say.")
            return
        try:
            while not done.wait(timeout=0.1):
                pass
        except KeyboardInterrupt:
            speaker.cancel()
            done.wait(timeout=3)
    except SpeechcastError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        speaker.shutdown()


if __name__ == "__main__":
    main()
