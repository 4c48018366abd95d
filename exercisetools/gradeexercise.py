#! /usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import re
import sys
from typing import Pattern

import colorlog
import yaml

from . import config
from . import exercise
from . import grade
from . import languages
from .errors import GradingError
from .languages import LanguageConfigError
from .version import add_version_arg

log = logging.getLogger(__name__)

EXIT_FAILED = 1
EXIT_INVALID = 2


def re_argument(s: str) -> Pattern[str]:
    try:
        r = re.compile(s)
        return r
    except re.error:
        raise argparse.ArgumentTypeError(f'{s} is not a valid regex')


def positive_float(s: str) -> float:
    try:
        value = float(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f'{s} is not a number')
    if not value > 0:
        raise argparse.ArgumentTypeError(f'{s} is not a positive number')
    return value


def positive_int(s: str) -> int:
    try:
        value = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f'{s} is not an integer')
    if value <= 0:
        raise argparse.ArgumentTypeError(f'{s} is not a positive integer')
    return value


def argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Grade a learner submission against the scenarios of an exercise.')
    parser.add_argument(
        '-t',
        '--timelim',
        type=positive_float,
        help='wall-clock time limit per scenario in seconds (default: the exercise time_limit, or the configured default)',
    )
    parser.add_argument('-m', '--memlim', type=positive_int, help='memory limit in MB')
    parser.add_argument('-j', '--threads', type=positive_int, help='run this many scenarios in parallel')
    parser.add_argument(
        '-s',
        '--scenario_filter',
        metavar='SCENARIOS',
        type=re_argument,
        help='grade only scenarios whose id contains this regex',
    )
    parser.add_argument(
        '--language',
        help='language of the submission, for exercises that do not name one (default: detect from the file name)',
    )
    parser.add_argument('-l', '--log_level', default='warning', help='set log level (debug, info, warning, error, critical)')
    parser.add_argument(
        '--max_additional_info',
        type=int,
        help='maximum number of lines of additional info (e.g. output diff or stderr) to display about a failed scenario (set to 0 to disable additional info)',
    )
    parser.add_argument('--report', choices=['text', 'yaml'], default='text', help='format of the grading report')
    add_version_arg(parser)

    parser.add_argument('exercise', help='exercise definition (YAML)')
    parser.add_argument('submission', help='learner source file')
    return parser


def initialize_logging(args: argparse.Namespace) -> None:
    fmt = '%(log_color)s%(levelname)s %(message)s'
    colorlog.basicConfig(stream=sys.stdout, format=fmt, level=getattr(logging, args.log_level.upper()))


def detect_language(language_config: languages.Languages, submission_path: str) -> str | None:
    lang = language_config.detect(submission_path)
    return lang.id if lang is not None else None


def main(argv: list[str] | None = None) -> int:
    args = argparser().parse_args(argv)

    initialize_logging(args)

    try:
        ex = exercise.load_exercise(args.exercise)
        submission = exercise.Submission.from_file(args.submission)
        language_config = languages.load_language_config()
        language = args.language or ex.language or detect_language(language_config, args.submission)
        if language is None:
            print(f'ERROR: could not determine the language of {os.path.basename(args.submission)}')
            return EXIT_INVALID
        log.info(f'Grading {args.submission} as {language} against exercise {ex.id}')

        session = grade.GradingSession(
            ex,
            language_config=language_config,
            threads=args.threads,
            timelim=args.timelim,
            memlim=args.memlim,
            language=language,
            scenario_filter=args.scenario_filter,
        )
        report = session.grade(submission)
    except (GradingError, config.ConfigError, LanguageConfigError, OSError) as e:
        print(f'ERROR: {e}')
        return EXIT_INVALID
    except KeyboardInterrupt:
        print('\naborting...')
        return EXIT_INVALID

    if args.max_additional_info is not None:
        report = dataclasses.replace(report, max_additional_info=args.max_additional_info)

    if args.report == 'yaml':
        print(yaml.safe_dump(report.as_dict(), sort_keys=False, allow_unicode=True), end='')
    else:
        print(report)

    return 0 if report.all_passed else EXIT_FAILED


if __name__ == '__main__':
    sys.exit(main())
