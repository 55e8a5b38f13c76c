#!/usr/bin/env python3
"""
Brevskriver Local - Command-line interface for drafting Danish letters on-device
"""

import argparse
import asyncio
import inspect
import json
import sys
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional

import yaml

from .api import (
    ConfigValidationError,
    build_config as build_session_config,
    configure_logging as configure_session_logging,
    create_orchestrator,
    draft_letter,
    prepare_data_directory,
    validate_config as validate_session_config,
)
from .config.scenarios import list_scenarios
from .models import CUSTOM_SCENARIO, InputLanguage, ModelStatus, Tone
from .orchestrator import LetterDraftingOrchestrator, ModelService
from .utils.hardware import AccelerationInfo, detect_acceleration
from .utils.validators import InputValidator

TONE_CHOICES = [tone.value for tone in Tone] + ["formal", "friendly"]
LANGUAGE_CHOICES = [language.value for language in InputLanguage]


class BrevskriverCLI:
    """
    Command-line interface for Brevskriver Local.
    Handles argument parsing, configuration and one-shot drafting sessions.
    """

    def __init__(
        self,
        model_service: Optional[ModelService] = None,
        capability_probe: Optional[Callable[[], AccelerationInfo]] = None,
    ):
        """
        Initialize CLI with argument parser.

        Args:
            model_service: Model service override (defaults to the local runtime)
            capability_probe: Acceleration probe override
        """
        self.parser = self._setup_argument_parser()
        self.model_service = model_service
        self.capability_probe = capability_probe
        self.logger = None  # Will be initialized after parsing args

    def _setup_argument_parser(self) -> argparse.ArgumentParser:
        """
        Set up command-line argument parser with subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            description='Brevskriver Local - On-device drafting of Danish letters',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # GENERATE A LETTER
  python brevskriver.py generate --scenario deadline_extension \\
                     --recipient "SKAT" --body "Jeg har brug for mere tid til min årsopgørelse"
  python brevskriver.py --output-format text generate --test

  # DRAFT AND PROFILE
  python brevskriver.py draft set --tone neutral --input-language en
  python brevskriver.py profile set --name "Olena Hansen" --email olena@example.dk

  # HISTORY AND EXPORT
  python brevskriver.py history list
  python brevskriver.py history load 3f2a...
  python brevskriver.py export --format pdf --output brev.pdf
            """
        )

        self._add_session_arguments(parser)

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        generate_parser = subparsers.add_parser('generate', help='Generate a letter from the draft')
        self._add_generate_arguments(generate_parser)

        draft_parser = subparsers.add_parser('draft', help='Inspect or edit the stored draft')
        self._add_draft_arguments(draft_parser)

        profile_parser = subparsers.add_parser('profile', help='Manage the sender profile')
        self._add_profile_arguments(profile_parser)

        history_parser = subparsers.add_parser('history', help='Manage saved letters')
        self._add_history_arguments(history_parser)

        scenarios_parser = subparsers.add_parser('scenarios', help='List scenario presets')
        scenarios_subparsers = scenarios_parser.add_subparsers(dest='scenarios_action')
        scenarios_subparsers.add_parser('list', help='List scenario presets')

        export_parser = subparsers.add_parser('export', help='Export the current letter')
        export_parser.add_argument(
            '--format',
            dest='export_format',
            choices=['docx', 'pdf', 'txt'],
            default='docx',
            help='Export format (default: docx)'
        )
        export_parser.add_argument(
            '--output',
            help='Output file path (default: <data-dir>/exports/letter_<timestamp>.<format>)'
        )

        subparsers.add_parser('copy', help='Copy the current letter to the clipboard')

        status_parser = subparsers.add_parser('status', help='Show acceleration and model status')
        status_parser.add_argument(
            '--wait',
            type=float,
            default=10.0,
            help='Seconds to wait for the model to load (default: 10)'
        )

        return parser

    def _add_session_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add options shared by every command."""

        model_group = parser.add_argument_group('local model')
        model_group.add_argument(
            '--llm-model',
            help='Model identifier in the local runtime (default: phi3.5)'
        )
        model_group.add_argument(
            '--llm-base-url',
            help='OpenAI-compatible endpoint on this machine (default: http://127.0.0.1:11434/v1)'
        )
        model_group.add_argument(
            '--llm-api-key',
            help='API key expected by the runtime (default: local)'
        )
        model_group.add_argument(
            '--no-auto-pull',
            dest='auto_pull',
            action='store_const',
            const=False,
            help='Fail instead of downloading a missing model'
        )
        model_group.add_argument(
            '--allow-cpu',
            dest='require_acceleration',
            action='store_const',
            const=False,
            help='Allow generation without GPU acceleration'
        )
        model_group.add_argument(
            '--temperature',
            type=float,
            help='Sampling temperature 0.0-2.0 (default: 0.3)'
        )
        model_group.add_argument(
            '--max-retries',
            type=int,
            help='Retries for busy or failing runtime calls (default: 3)'
        )

        storage_group = parser.add_argument_group('storage and output')
        storage_group.add_argument(
            '--data-dir',
            help='Directory for the database, exports and logs (default: ./brevskriver_data)'
        )
        storage_group.add_argument(
            '--history-limit',
            type=int,
            help='Maximum number of saved letters (default: 50)'
        )
        storage_group.add_argument(
            '--output-format',
            choices=['json', 'yaml', 'text'],
            help='Output format (default: json)'
        )

        logging_group = parser.add_argument_group('logging')
        logging_group.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            help='Logging level (default: INFO)'
        )
        logging_group.add_argument(
            '--log-file',
            help='Log file path (default: <data-dir>/logs/brevskriver_<session>.log)'
        )
        logging_group.add_argument(
            '--verbose',
            action='store_const',
            const=True,
            help='Enable verbose logging'
        )

    def _add_letter_field_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add the draft form fields."""
        parser.add_argument('--subject', help='Letter subject')
        parser.add_argument('--recipient', help='Recipient (authority, company or person)')
        parser.add_argument('--body', help='Description of the situation, in the input language')
        parser.add_argument('--tone', choices=TONE_CHOICES, help='Letter tone')
        parser.add_argument(
            '--input-language',
            choices=LANGUAGE_CHOICES,
            help='Language of the description'
        )
        parser.add_argument(
            '--scenario',
            help='Scenario preset key (see "scenarios list")'
        )

    def _add_generate_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add generate arguments."""
        self._add_letter_field_arguments(parser)
        parser.add_argument(
            '--test',
            action='store_true',
            help='Build the template letter without calling the model'
        )
        parser.add_argument(
            '--save-history',
            action='store_true',
            help='Save the finished letter to history'
        )

    def _add_draft_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add draft management arguments."""
        draft_subparsers = parser.add_subparsers(dest='draft_action', help='Draft actions')

        draft_subparsers.add_parser('show', help='Show the stored draft')

        set_parser = draft_subparsers.add_parser('set', help='Edit draft fields')
        self._add_letter_field_arguments(set_parser)

        draft_subparsers.add_parser('clear', help='Clear the stored draft')

    def _add_profile_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add profile management arguments."""
        profile_subparsers = parser.add_subparsers(dest='profile_action', help='Profile actions')

        profile_subparsers.add_parser('show', help='Show the sender profile')

        set_parser = profile_subparsers.add_parser('set', help='Edit and save the sender profile')
        set_parser.add_argument('--name', help='Sender name')
        set_parser.add_argument('--phone', help='Phone number')
        set_parser.add_argument('--email', help='Email address')
        set_parser.add_argument('--address', help='Postal address')

        profile_subparsers.add_parser('clear', help='Remove the stored profile')

    def _add_history_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add history management arguments."""
        history_subparsers = parser.add_subparsers(dest='history_action', help='History actions')

        history_subparsers.add_parser('list', help='List saved letters, most recent first')

        show_parser = history_subparsers.add_parser('show', help='Show a saved letter')
        show_parser.add_argument('history_id', help='History item ID')

        load_parser = history_subparsers.add_parser('load', help='Load a saved letter into the draft')
        load_parser.add_argument('history_id', help='History item ID')

        delete_parser = history_subparsers.add_parser('delete', help='Delete a saved letter')
        delete_parser.add_argument('history_id', help='History item ID')

        history_subparsers.add_parser('clear', help='Delete all saved letters')

    def parse_args(self, args: Optional[list] = None) -> argparse.Namespace:
        """
        Parse command-line arguments.

        Args:
            args: Optional list of arguments (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def create_config(self, args: argparse.Namespace) -> Dict[str, Any]:
        """
        Create configuration dictionary from parsed arguments.

        Args:
            args: Parsed arguments

        Returns:
            Configuration dictionary
        """
        return build_session_config(args)

    def setup_logging(self, config: Dict[str, Any]) -> None:
        """
        Set up logging based on configuration.

        Args:
            config: Configuration dictionary
        """
        self.logger = configure_session_logging(config)

    def validate_configuration(self, config: Dict[str, Any]) -> tuple[bool, list]:
        """
        Comprehensive configuration validation.

        Args:
            config: Configuration dictionary to validate

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        return validate_session_config(config)

    def format_output(self, results: Dict[str, Any], format_type: str) -> str:
        """
        Format command results for output.

        Args:
            results: Command results
            format_type: Output format (json, text, yaml)

        Returns:
            Formatted output string
        """
        if format_type == 'yaml':
            return yaml.safe_dump(results, default_flow_style=False, allow_unicode=True, sort_keys=False)

        elif format_type == 'text':
            return self._format_text_output(results)

        return json.dumps(results, indent=2, default=str, ensure_ascii=False)

    def _format_text_output(self, results: Dict[str, Any]) -> str:
        """
        Format results as human-readable text.

        A letter is printed as-is; other results as ``key: value`` lines.

        Args:
            results: Command results

        Returns:
            Formatted text output
        """
        output = []

        letter = results.get('output')
        if isinstance(letter, str) and letter:
            output.append(letter)
            if results.get('status') not in (None, 'ready'):
                output.append("")
                output.append(f"Status: {results['status']}")
            return "\n".join(output)

        for key, value in results.items():
            if isinstance(value, dict):
                output.append(f"{key.replace('_', ' ').title()}:")
                for sub_key, sub_value in value.items():
                    output.append(f"  {sub_key}: {sub_value}")
            elif isinstance(value, list):
                output.append(f"{key.replace('_', ' ').title()}:")
                if not value:
                    output.append("  (none)")
                for item in value:
                    if isinstance(item, dict):
                        output.append("  " + " | ".join(str(v) for v in item.values()))
                    else:
                        output.append(f"  {item}")
            else:
                output.append(f"{key.replace('_', ' ').title()}: {value}")

        return "\n".join(output)

    def run(self, args: Optional[list] = None) -> int:
        """
        Main execution method.

        Args:
            args: Optional command-line arguments

        Returns:
            Exit code (0 for success, 1 for error)
        """
        try:
            parsed_args = self.parse_args(args)

            command = getattr(parsed_args, 'command', None)
            if command is None:
                self.parser.print_help(sys.stderr)
                return 1

            config = self.create_config(parsed_args)
            prepare_data_directory(config)
            self.setup_logging(config)

            config_valid, config_errors = self.validate_configuration(config)
            if not config_valid:
                print("Configuration validation failed:", file=sys.stderr)
                for error in config_errors:
                    print(f"  - {error}", file=sys.stderr)
                return 1

            self.logger.debug(f"Running command {command} in session {config['session_id']}")

            if command == 'generate':
                return self._run_generate(parsed_args, config)
            elif command == 'draft':
                return self._run_draft_command(parsed_args, config)
            elif command == 'profile':
                return self._run_profile_command(parsed_args, config)
            elif command == 'history':
                return self._run_history_command(parsed_args, config)
            elif command == 'scenarios':
                return self._run_scenarios_command(parsed_args, config)
            elif command == 'export':
                return self._run_export_command(parsed_args, config)
            elif command == 'copy':
                return self._run_copy_command(parsed_args, config)
            elif command == 'status':
                return self._run_status_command(parsed_args, config)
            else:
                print(f"Unknown command: {command}", file=sys.stderr)
                return 1

        except KeyboardInterrupt:
            print("\nExecution interrupted by user", file=sys.stderr)
            return 1
        except Exception as e:
            print(f"Error: {str(e)}", file=sys.stderr)
            return 1

    def _emit(self, results: Dict[str, Any], config: Dict[str, Any]) -> None:
        print(self.format_output(results, config['output_format']))

    def _with_orchestrator(
        self,
        config: Dict[str, Any],
        action: Callable[[LetterDraftingOrchestrator], Any],
        init_model: bool = False,
    ) -> Any:
        """
        Run ``action`` inside a started orchestrator and close it afterwards.

        Closing flushes the debounced autosave, so draft edits are on disk
        before the process exits.
        """
        async def session():
            orchestrator = create_orchestrator(
                config,
                model_service=self.model_service,
                capability_probe=self.capability_probe,
            )
            await orchestrator.start(init_model=init_model)
            try:
                result = action(orchestrator)
                if inspect.isawaitable(result):
                    result = await result
                return result
            finally:
                await orchestrator.close()

        return asyncio.run(session())

    def _report_model_status(self, status: ModelStatus) -> None:
        if status.message:
            print(f"[{status.progress:.0%}] {status.message}", file=sys.stderr)

    def _run_generate(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Generate a letter from the stored draft and the given fields."""
        try:
            result = asyncio.run(draft_letter(
                config,
                subject=args.subject,
                recipient=args.recipient,
                body=args.body,
                tone=args.tone,
                input_language=args.input_language,
                scenario=args.scenario,
                test_mode=args.test,
                save_history=args.save_history,
                model_service=self.model_service,
                capability_probe=self.capability_probe,
                status_listener=None if args.test else self._report_model_status,
                auto_prepare=False,
                auto_configure_logging=False,
            ))
        except ConfigValidationError as e:
            print(f"Configuration validation failed: {str(e)}", file=sys.stderr)
            return 1

        self._emit(result, config)

        if result.get('status') == 'ready':
            return 0

        print(result.get('message') or "Generation failed", file=sys.stderr)
        return 1

    def _run_draft_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Handle draft management commands."""
        action = getattr(args, 'draft_action', None)

        if action == 'show':
            draft = self._with_orchestrator(config, lambda o: o.draft.to_dict())
            self._emit(draft, config)
            return 0

        elif action == 'set':
            def edit(orchestrator: LetterDraftingOrchestrator) -> Dict[str, Any]:
                if args.scenario:
                    orchestrator.apply_scenario(args.scenario)
                fields = {
                    'subject': args.subject,
                    'recipient': args.recipient,
                    'body': args.body,
                    'tone': args.tone,
                    'input_language': args.input_language,
                }
                orchestrator.update_draft(**{k: v for k, v in fields.items() if v is not None})
                return orchestrator.draft.to_dict()

            self._emit(self._with_orchestrator(config, edit), config)
            return 0

        elif action == 'clear':
            self._with_orchestrator(config, lambda o: o.clear_draft())
            print("Draft cleared")
            return 0

        print(f"Unknown draft action: {action}", file=sys.stderr)
        return 1

    def _run_profile_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Handle profile management commands."""
        action = getattr(args, 'profile_action', None)

        if action == 'show':
            self._emit(self._with_orchestrator(config, lambda o: o.profile.to_dict()), config)
            return 0

        elif action == 'set':
            changes = {
                name: getattr(args, name)
                for name in ('name', 'phone', 'email', 'address')
                if getattr(args, name) is not None
            }

            def edit(orchestrator: LetterDraftingOrchestrator) -> Optional[Dict[str, Any]]:
                orchestrator.update_profile(**changes)
                if not orchestrator.save_profile():
                    return None
                return orchestrator.profile.to_dict()

            profile = self._with_orchestrator(config, edit)
            if profile is None:
                print("Failed to save profile", file=sys.stderr)
                return 1

            for warning in InputValidator().validate_profile(profile):
                print(f"Warning: {warning}", file=sys.stderr)
            self._emit(profile, config)
            return 0

        elif action == 'clear':
            self._with_orchestrator(config, lambda o: o.clear_profile())
            print("Profile cleared")
            return 0

        print(f"Unknown profile action: {action}", file=sys.stderr)
        return 1

    def _run_history_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Handle history commands."""
        action = getattr(args, 'history_action', None)

        if action == 'list':
            items = self._with_orchestrator(config, lambda o: o.history())
            self._emit({
                'count': len(items),
                'letters': [
                    {
                        'id': item.id,
                        'created_at': item.created_at,
                        'scenario': item.scenario,
                        'subject': item.subject,
                        'recipient': item.recipient,
                    }
                    for item in items
                ],
            }, config)
            return 0

        elif action == 'show':
            item = self._with_orchestrator(config, lambda o: o.history_store.get(args.history_id))
            if item is None:
                print(f"History item not found: {args.history_id}", file=sys.stderr)
                return 1
            self._emit(item.to_dict(), config)
            return 0

        elif action == 'load':
            loaded = self._with_orchestrator(config, lambda o: o.load_from_history(args.history_id))
            if not loaded:
                print(f"History item not found: {args.history_id}", file=sys.stderr)
                return 1
            print(f"Loaded letter {args.history_id} into the draft")
            return 0

        elif action == 'delete':
            deleted = self._with_orchestrator(config, lambda o: o.delete_history_item(args.history_id))
            if not deleted:
                print(f"History item not found: {args.history_id}", file=sys.stderr)
                return 1
            print(f"Deleted letter {args.history_id}")
            return 0

        elif action == 'clear':
            self._with_orchestrator(config, lambda o: o.clear_history())
            print("History cleared")
            return 0

        print(f"Unknown history action: {action}", file=sys.stderr)
        return 1

    def _run_scenarios_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """List scenario presets."""
        scenarios = [
            {
                'key': preset.key,
                'title': preset.title,
                'default_tone': preset.default_tone.value,
                'default_subject': preset.default_subject,
            }
            for preset in list_scenarios()
        ]
        self._emit({'custom': CUSTOM_SCENARIO, 'scenarios': scenarios}, config)
        return 0

    def _run_export_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Export the current letter."""
        def export(orchestrator: LetterDraftingOrchestrator):
            return orchestrator.export(args.export_format, args.output), orchestrator.notice

        path, notice = self._with_orchestrator(config, export)
        if path is None:
            print(f"Export failed: {notice}", file=sys.stderr)
            return 1

        print(f"Letter exported to: {path}")
        return 0

    def _run_copy_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Copy the current letter to the clipboard."""
        def copy(orchestrator: LetterDraftingOrchestrator):
            return orchestrator.copy_output(), orchestrator.notice

        copied, notice = self._with_orchestrator(config, copy)
        if not copied:
            print(f"Copy failed: {notice}", file=sys.stderr)
            return 1

        print("Letter copied to clipboard")
        return 0

    def _run_status_command(self, args: argparse.Namespace, config: Dict[str, Any]) -> int:
        """Report acceleration and model status without downloading anything."""
        probe = self.capability_probe or detect_acceleration

        async def status(orchestrator: LetterDraftingOrchestrator) -> Dict[str, Any]:
            await orchestrator.wait_until_ready(timeout=args.wait)
            model_status = orchestrator.model_status.value
            return {
                'model': config['llm_model'],
                'endpoint': config['llm_base_url'],
                'ready': model_status.ready,
                'progress': model_status.progress,
                'message': model_status.message,
                'require_acceleration': config['require_acceleration'],
                'acceleration': asdict(probe()),
            }

        results = self._with_orchestrator(dict(config, auto_pull=False), status, init_model=True)
        self._emit(results, config)
        return 0


def main():
    """Main entry point for command-line execution."""
    cli = BrevskriverCLI()
    exit_code = cli.run()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
