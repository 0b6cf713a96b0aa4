#!/usr/bin/env python3
"""
Lingua Coach terminal client.

Records from the microphone, sends each recording to the backend and shows
the feedback or plays the tutor's reply.

Usage:
    lingua-coach-client                       # Conversation at level B1
    lingua-coach-client --mode practice       # Scored feedback per recording
    lingua-coach-client --level A2 --url http://localhost:8000

Press Enter to start speaking and Enter again to stop. Type 'c' to clear
the conversation, 'p' to replay the last reply, or 'q' to quit.
"""

import argparse
import asyncio
import sys
from typing import Optional

import httpx
from loguru import logger

from lingua_coach.client.conversation import ConversationTurnManager, Role
from lingua_coach.client.devices import SoundDeviceInput, SoundDevicePlayer
from lingua_coach.client.orchestrator import Mode, RequestOrchestrator
from lingua_coach.client.recorder import RecordingStateMachine
from lingua_coach.client.session import CoachSession
from lingua_coach.config import get_settings
from lingua_coach.models import ConversationReply, FeedbackReport
from lingua_coach.prompts import CEFRLevel, get_level_info


class Colors:
    """ANSI color codes for terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"

    @classmethod
    def disable(cls):
        """Disable colors for non-TTY outputs."""
        cls.RED = cls.GREEN = cls.YELLOW = cls.BLUE = ""
        cls.MAGENTA = cls.CYAN = cls.BOLD = cls.RESET = ""


def print_header(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {text}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.RESET}\n")


def print_error(text: str):
    print(f"{Colors.RED}✗ {text}{Colors.RESET}")


def print_feedback(report: FeedbackReport):
    """Render a practice feedback report."""
    print_header(f"Overall score: {report.overall_score}/100")
    print(f'{Colors.MAGENTA}You said:{Colors.RESET} "{report.transcription}"\n')

    print(f"{Colors.BOLD}Pronunciation {report.pronunciation.score}{Colors.RESET}  {report.pronunciation.feedback}")
    print(f"{Colors.BOLD}Grammar       {report.grammar.score}{Colors.RESET}")
    for correction in report.grammar.corrections:
        print(f"  {Colors.RED}{correction.original}{Colors.RESET} -> {Colors.GREEN}{correction.corrected}{Colors.RESET}")
        print(f"    {correction.explanation}")
    print(f"{Colors.BOLD}Vocabulary    {report.vocabulary.score}{Colors.RESET}  {report.vocabulary.feedback}")
    for suggestion in report.vocabulary.suggestions:
        print(f"  • {suggestion}")
    print(f"{Colors.BOLD}Fluency       {report.fluency.score}{Colors.RESET}  {report.fluency.feedback}")

    print(f"\n{Colors.GREEN}{report.encouragement}{Colors.RESET}")
    if report.practice_topics:
        print(f"\n{Colors.BOLD}Practice next:{Colors.RESET}")
        for topic in report.practice_topics:
            print(f"  • {topic}")


def print_reply(reply: ConversationReply):
    print(f'{Colors.MAGENTA}You:{Colors.RESET}   "{reply.transcription}"')
    print(f"{Colors.GREEN}Tutor:{Colors.RESET} {reply.response}\n")


def last_assistant_turn_id(session: CoachSession) -> Optional[str]:
    for turn in reversed(session.conversation.turns):
        if turn.role is Role.ASSISTANT and turn.has_audio:
            return turn.id
    return None


def replay_last_reply(session: CoachSession) -> None:
    """Play the most recent reply again; playback errors are reported, not raised."""
    turn_id = last_assistant_turn_id(session)
    if not turn_id:
        return
    try:
        session.conversation.play(turn_id)
    except Exception as e:
        logger.warning(f"Could not replay reply audio: {e}")
        print_error("Could not play the reply audio")


async def prompt(text: str) -> str:
    loop = asyncio.get_running_loop()
    return (await loop.run_in_executor(None, input, text)).strip().lower()


async def run_client(args: argparse.Namespace) -> int:
    settings = get_settings()
    level = CEFRLevel(args.level.upper())
    mode = Mode(args.mode)

    device = SoundDeviceInput(sample_rate=args.sample_rate, device=args.device)
    player = SoundDevicePlayer(audio_format=settings.tts_format)

    async with httpx.AsyncClient(base_url=args.url, timeout=settings.client_timeout) as http_client:
        async with RecordingStateMachine(device) as recorder:
            session = CoachSession(
                recorder=recorder,
                orchestrator=RequestOrchestrator(http_client),
                conversation=ConversationTurnManager(player, history_window=settings.history_window),
                level=level,
                mode=mode,
            )

            info = get_level_info(level)
            print_header(f"Lingua Coach - {mode.value} - {level.value} {info.name}")

            while True:
                command = await prompt("[Enter] speak  [p] replay  [c] clear  [q] quit > ")
                if command == "q":
                    break
                if command == "c":
                    session.clear_conversation()
                    print("Conversation cleared.\n")
                    continue
                if command == "p":
                    replay_last_reply(session)
                    continue

                await session.start_recording()
                if not recorder.is_recording:
                    print_error(session.display_error or "Could not start recording")
                    continue

                await prompt(f"{Colors.RED}● Recording...{Colors.RESET} press Enter to stop ")
                print("Processing...")
                result = await session.stop_and_submit()

                if isinstance(result, FeedbackReport):
                    print_feedback(result)
                elif isinstance(result, ConversationReply):
                    print_reply(result)
                elif session.display_error:
                    print_error(session.display_error)

            session.conversation.stop()

    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Lingua Coach terminal client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    settings = get_settings()
    parser.add_argument("--url", default=settings.api_base_url, help="Backend base URL")
    parser.add_argument(
        "--level",
        default=CEFRLevel.B1.value,
        choices=[level.value for level in CEFRLevel],
        help="Your CEFR level",
    )
    parser.add_argument(
        "--mode",
        default=Mode.CONVERSATION.value,
        choices=[mode.value for mode in Mode],
        help="practice (scored feedback) or conversation (spoken replies)",
    )
    parser.add_argument("--device", type=int, default=None, help="Input device index")
    parser.add_argument(
        "--sample-rate", type=int, default=settings.record_sample_rate, help="Recording sample rate (Hz)"
    )
    parser.add_argument("--verbose", action="store_true", help="Show debug logs")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    if args.no_color or not sys.stdout.isatty():
        Colors.disable()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "WARNING", format=settings.log_format)

    try:
        return asyncio.run(run_client(args))
    except KeyboardInterrupt:
        print("\nBye!")
        return 130


if __name__ == "__main__":
    sys.exit(main())
