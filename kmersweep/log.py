#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

Writes kmersweep's messages to stdout and, when a log file is set, to the log file as well. Based
on the logging class of Unicycler (https://github.com/rrwick/Unicycler).

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""


import datetime
import re
import shutil
import subprocess
import sys
import textwrap
from pathlib import Path


class Log(object):

    def __init__(self, log_filename=None, stdout_verbosity_level=1, log_file_verbosity_level=None):
        """
        'log_filename' can be a str or a Path, when the file exists new messages are appended
        """
        self.log_filename = Path(log_filename) if log_filename else None

        try:
            self.colours = int(subprocess.check_output(["tput", "colors"]).decode().strip())
        except (ValueError, subprocess.CalledProcessError, FileNotFoundError, AttributeError):
            self.colours = 1

        # The log file never gets a verbosity of 0, otherwise nothing would be written to it
        self.stdout_verbosity_level = stdout_verbosity_level
        if log_file_verbosity_level is None:
            log_file_verbosity_level = stdout_verbosity_level
        self.log_file_verbosity_level = max(1, log_file_verbosity_level)

        self.log_file = None
        if self.log_filename:
            log_file_exists = self.log_filename.is_file()
            self.log_file = open(self.log_filename, "at", 1, encoding="utf8")
            if log_file_exists:
                self.log_file.write("\n" * 6)

    def close(self):
        if self.log_file and not self.log_file.closed:
            self.log_file.close()

    def __del__(self):
        self.close()


# Replaced by each command once its output directory is known
logger = Log()


def log(text, verbosity=1, stderr=False, end="\n", print_to_screen=True, write_to_log_file=True):
    text = f"{text}"
    text_no_formatting = remove_formatting(text)

    if stderr or (verbosity <= logger.stdout_verbosity_level and print_to_screen):
        if logger.colours <= 1:
            text = text_no_formatting
        elif logger.colours <= 8:
            text = remove_dim_formatting(text)
        print(text, file=sys.stderr if stderr else sys.stdout, end=end, flush=True)

    if logger.log_file and verbosity <= logger.log_file_verbosity_level and write_to_log_file:
        logger.log_file.write(f"{text_no_formatting}\n")


def log_section_header(message, verbosity=1, single_newline=False):
    """
    Logs a section header with a timestamp, underlined with dashes in the log file
    """
    log("" if single_newline else "\n", verbosity)
    time = get_timestamp()
    time_str = f"({time})"
    if logger.colours > 8:
        time_str = dim(time_str)
    log(f"{bold_yellow_underline(message)} {time_str}", verbosity)
    log("-" * (len(message) + 3 + len(time)), verbosity, print_to_screen=False)


def log_explanation(
    text, verbosity=1, print_to_screen=True, write_to_log_file=True, extra_empty_lines_after=1,
    indent_size=4
):
    """
    Explanatory text, wrapped to the terminal width on screen but kept in a single line in the log
    """
    text = f'{" " * indent_size}{text}'
    if print_to_screen:
        for line in textwrap.wrap(text, width=shutil.get_terminal_size().columns - 1):
            if logger.colours > 8:
                line = dim(line)
            log(line, verbosity=verbosity, write_to_log_file=False)
    if write_to_log_file:
        log(text, verbosity=verbosity, print_to_screen=False)
    for _ in range(extra_empty_lines_after):
        log("", verbosity=verbosity, print_to_screen=print_to_screen,
            write_to_log_file=write_to_log_file)


def log_number_list(numbers, verbosity=1, indent_size=4):
    """
    Long lists of kmer sizes wrap nicely on screen
    """
    text = f'{" " * indent_size}{", ".join(str(x) for x in numbers)}'
    for line in textwrap.wrap(text, width=shutil.get_terminal_size().columns - 1,
                              subsequent_indent=" " * indent_size):
        log(line, verbosity=verbosity, write_to_log_file=False)
    log(text, verbosity=verbosity, print_to_screen=False)


def get_timestamp():
    return f"{datetime.datetime.now():%Y-%m-%d %H:%M:%S}"


END_FORMATTING = "\033[0m"
BOLD = "\033[1m"
UNDERLINE = "\033[4m"
YELLOW = "\033[93m"
DIM = "\033[2m"


def bold_yellow_underline(text):
    return f"{YELLOW}{BOLD}{UNDERLINE}{text}{END_FORMATTING}"


def dim(text):
    return f"{DIM}{text}{END_FORMATTING}"


def remove_formatting(text):
    return re.sub(r"\033.*?m", r"", text)


def remove_dim_formatting(text):
    return re.sub(r"\033\[2m", r"", text)
