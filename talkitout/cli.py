"""
TalkItOut terminal client.

Practice a workplace conflict conversation from the command line, typed or
spoken, against the local gateways or a running server.
"""

import argparse
import sys
from typing import Optional

from .config import PROJECT_ROOT, Settings, setup_logging

SAMPLE_AUDIO_PATH = PROJECT_ROOT / "static" / "sample-audio.mp3"


def print_header():
    """Print CLI header."""
    print("""
╔═══════════════════════════════════════════════════════════════╗
║                                                               ║
║     TALKITOUT - Workplace Conflict Practice                   ║
║                                                               ║
║     Talk to a coworker who keeps missing deadlines            ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝
    """)


def check_dependencies(voice: bool, speak: bool) -> bool:
    """Check that the optional audio dependencies are installed."""
    needed = []
    if voice:
        needed += ["sounddevice"]
    if speak:
        needed += ["sounddevice", "pydub"]

    missing = []
    for name in dict.fromkeys(needed):
        try:
            __import__(name)
        except ImportError:
            missing.append(name)

    if missing:
        print("Missing voice dependencies:")
        for dep in missing:
            print(f"   - {dep}")
        print("\nInstall with:")
        print("   pip install talkitout[voice]")
        return False
    return True


def build_session(args, settings: Settings):
    """Wire the session to local gateways or to a server."""
    from .session import ConversationSession
    from .voice.capture import SpeechCapture
    from .voice.text_to_speech import ReplyPlayer, TextToSpeech, decode_data_url

    if args.server:
        from .client import ApiClient

        api = ApiClient(args.server)
        dialogue = api
        transcriber = api
        fetch_audio = api.speech_audio
    else:
        from .agents.dialogue_gateway import DialogueGateway
        from .llm.manager import LLMManager
        from .voice.speech_to_text import TranscriptionGateway

        manager = LLMManager(
            openai_api_key=settings.openai_api_key,
            groq_api_key=settings.groq_api_key,
        )
        dialogue = DialogueGateway(manager, threshold=args.threshold)
        transcriber = TranscriptionGateway(settings.openai_api_key, settings.google_ai_api_key)
        tts = TextToSpeech(elevenlabs_api_key=settings.elevenlabs_api_key, elevenlabs_voice=args.tts_voice)

        def fetch_audio(text: str) -> Optional[bytes]:
            audio = decode_data_url(tts.synthesize(text).audio_url)
            if audio is None and SAMPLE_AUDIO_PATH.exists():
                return SAMPLE_AUDIO_PATH.read_bytes()
            return audio

    session = ConversationSession(
        dialogue,
        capture=SpeechCapture(transcriber=transcriber),
        storage={},
        threshold=args.threshold,
        auto_play=args.speak,
    )
    if args.speak:
        session.player = ReplyPlayer(fetch_audio, on_finished=session.audio_finished)
    return session


def setup_camera(session, frames: int):
    if frames > 0:
        session.enable_camera()
        session.record_frame(frames)


def print_reply(session, result):
    from .prompts.persona import display_reply

    if result is None:
        print(f"\n⚠️  {session.state.messages[-1].content}\n")
        return
    print(f"\nCoworker: {display_reply(result.message)}\n")


def read_turn(session, voice: bool) -> Optional[str]:
    """
    Get the next user input.

    Returns a command string ("/end", "/reset", "/quit") or None once a
    spoken turn has been sent.
    """
    if not voice:
        return input("You: ").strip()

    command = input("Press Enter to speak (or type /end, /reset, /quit): ").strip()
    if command:
        return command

    if not session.start():
        from .session import PERMISSION_MESSAGE
        print(f"⚠️  {PERMISSION_MESSAGE}")
        return ""

    print("🎤 Listening... (speak now)")
    transcript = session.capture.listen()
    print(f"   You said: \"{transcript}\"")
    print_reply(session, session.stop())
    return None


def run_session(session, args) -> bool:
    """Run the conversation loop. Returns False if the user quit early."""
    from .results import format_results_text, load_results

    while not session.state.ended:
        line = read_turn(session, args.voice)
        if line is None or line == "":
            continue

        if line == "/quit":
            return False
        if line == "/reset":
            session.reset()
            setup_camera(session, args.camera_frames)
            print("\n🔄 New practice session started\n")
            continue
        if line == "/end":
            if session.state.turn_count == 0:
                print("   Say something first, then end the session.")
                continue
            print("\n⏹️  Ending session, generating feedback...")
            session.end_session_manually()
            continue
        if line.startswith("/"):
            print(f"   Unknown command: {line}")
            continue

        print_reply(session, session.submit(line))

    results = load_results(session.storage)
    if results is None:
        print("No session completed yet.")
        return True
    print(format_results_text(results))
    return True


def main():
    """Main CLI entry point."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(
        description="TalkItOut - practice a difficult workplace conversation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Type your side of the conversation
  talkitout

  # Speak your turns and hear the replies
  talkitout --voice --speak

  # Use a deployed server instead of local API keys
  talkitout --server https://talkitout.example.com

  # Simulate a camera-enabled session (adds body-language feedback)
  talkitout --camera-frames 24

Commands during a session:
  /end    end now and get feedback
  /reset  start over
  /quit   exit without results
        """
    )

    parser.add_argument(
        "--voice",
        action="store_true",
        help="Speak your turns through the microphone"
    )

    parser.add_argument(
        "--speak",
        action="store_true",
        help="Play the coworker's replies as audio"
    )

    parser.add_argument(
        "--server", "-s",
        default=None,
        help="Base URL of a TalkItOut server (default: use local gateways)"
    )

    parser.add_argument(
        "--camera-frames",
        type=int,
        default=0,
        help="Pretend the camera captured N frames"
    )

    parser.add_argument(
        "--threshold", "-t",
        type=int,
        default=settings.feedback_threshold,
        help=f"Turns before feedback (default: {settings.feedback_threshold})"
    )

    parser.add_argument(
        "--tts-voice",
        default=None,
        help="ElevenLabs voice name or ID (default: rachel)"
    )

    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: from LOG_LEVEL or INFO)"
    )

    args = parser.parse_args()
    if args.threshold < 1:
        parser.error("--threshold must be at least 1")

    setup_logging(args.log_level.upper())
    print_header()

    if not check_dependencies(args.voice, args.speak):
        sys.exit(1)

    session = build_session(args, settings)
    setup_camera(session, args.camera_frames)

    if args.voice and not session.request_permission():
        from .session import PERMISSION_MESSAGE
        print(f"⚠️  {PERMISSION_MESSAGE}")

    print(f"\n Configuration:")
    print(f"   Mode: {'voice' if args.voice else 'typed'}")
    print(f"   Backend: {args.server or 'local'}")
    print(f"   Feedback after: {args.threshold} turns")
    print(f"   Camera: {'enabled (' + str(args.camera_frames) + ' frames)' if args.camera_frames > 0 else 'off'}")
    print()
    print(session.state.messages[0].content)
    print()

    try:
        run_session(session, args)
    except KeyboardInterrupt:
        print("\n\n⏹️ Session interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
