#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""


import argparse
import importlib
import os
import re
import shutil
import subprocess
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from importlib import util
from pathlib import Path

from tqdm import tqdm

from . import log


def set_threads(threads):
    """
    Parse the string given by '--threads' to return maximum threads to use
    """
    threads_total = os.cpu_count()
    threads_max = threads_total if threads == "auto" else min(int(threads), threads_total)
    return threads_max, threads_total


def set_concurrency(concurrent, threads_max, num_tasks):
    """
    Number of simultaneous processes, never more than the tasks to run or the available threads
    """
    if concurrent == "auto":
        concurrent = threads_max
    else:
        try:
            concurrent = int(concurrent)
        except ValueError:
            quit_with_error("Invalid value for '--concurrent', set it to 'auto' or use a number")
    return max(1, min(concurrent, threads_max, num_tasks))


def tqdm_serial_run(function, params_list, description_msg, finished_msg, unit, show_less=False):
    """
    Run a function in serial mode using a `tqdm` progress bar, 'function' returns a message
    """
    start = time.time()
    log.log(bold(f"{description_msg}:"))
    tqdm_cols = min(shutil.get_terminal_size().columns, 120)
    with tqdm(total=len(params_list), ncols=tqdm_cols, unit=unit) as pbar:
        for params in params_list:
            function_message = function(*params)
            log.log(function_message, print_to_screen=False)
            if not show_less:
                tqdm.write(function_message)
            pbar.update()
    log.log(bold(
        f" └─→ {finished_msg} for {len(params_list)} {unit}(s)"
        f" [{elapsed_time(time.time() - start)}]"
    ))


def tqdm_collect_run(
    function, params_list, description_msg, finished_msg, unit, concurrent=1, show_less=False
):
    """
    Run 'function' for every tuple in 'params_list' and return the list of its results. Each result
    is a dictionary with at least a "message" key; a result with a true "fatal" key stops the
    submission of the remaining tasks, already running tasks are allowed to finish. With
    'concurrent' > 1 the tasks run in a ProcessPoolExecutor, so 'function' must be defined at the
    top level of a module
    """
    def report(result):
        log.log(result["message"], print_to_screen=False)
        if not show_less:
            tqdm.write(result["message"])
        pbar.update()

    start = time.time()
    log.log(bold(f"{description_msg}:"))
    tqdm_cols = min(shutil.get_terminal_size().columns, 120)
    pbar = tqdm(total=len(params_list), ncols=tqdm_cols, unit=unit)
    results = []
    if concurrent <= 1:
        for params in params_list:
            result = function(*params)
            results.append(result)
            report(result)
            if result.get("fatal"):
                break
    else:
        with ProcessPoolExecutor(max_workers=concurrent) as executor:
            futures = [executor.submit(function, *params) for params in params_list]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                result = future.result()
                results.append(result)
                report(result)
                if result.get("fatal"):
                    for pending in futures:
                        pending.cancel()
    pbar.close()
    log.log(bold(
        f" └─→ {finished_msg} for {len(results)} {unit}(s)"
        f" [{elapsed_time(time.time() - start)}]"
    ))
    return results


def elapsed_time(total_seconds):
    """
    Return minutes, hours, or days if task took more than 60 seconds
    """
    if total_seconds <= 60:
        return f"{total_seconds:.3f}s"
    days, seconds = divmod(total_seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    time_str = ""
    for value, symbol in zip([days, hours, minutes], ["d", "h", "m"]):
        if value == 0 and time_str == "":
            continue
        time_str += f"{value:.0f}{symbol} "
    return f"{time_str}{seconds:.1f}s ({total_seconds:.3f}s)"


def make_output_dir(out_dir):
    """
    Creates the output directory, if it doesn't already exist. The directory can be provided as a
    str or as a Path. Returns the created directory as a Path and a status message.
    """
    out_dir = Path(out_dir)
    if not out_dir.exists():
        try:
            out_dir.mkdir(parents=True)
        except OSError:
            quit_with_error(f"kmersweep was unable to make the output directory {out_dir}")
        message = "Output directory successfully created"
    elif list(out_dir.glob("*")):
        message = "Output directory already exists and files may be overwritten"
    else:
        message = "Output directory already exists"
    return out_dir.resolve(), message


def file_is_empty(file_path):
    return Path(file_path).stat().st_size == 0


def run_command(cmd, log_file, timeout=None, append=False):
    """
    Runs an external program writing the command line and everything the program prints to
    'log_file'. Returns "OK" when the program exits with status 0, "failed" for any other status or
    when the program can't be executed, and "timeout" when it runs longer than 'timeout' seconds.
    Whether the outputs of a successful run are empty must be checked by the caller
    """
    with open(log_file, "at" if append else "wt") as cmd_log:
        cmd_log.write(f"kmersweep's command:\n  {' '.join(f'{c}' for c in cmd)}\n\n")
        cmd_log.flush()
        try:
            process = subprocess.run(
                [f"{c}" for c in cmd], stdout=cmd_log, stderr=cmd_log, timeout=timeout
            )
        except subprocess.TimeoutExpired:
            cmd_log.write(f"\nkmersweep: command killed after {timeout} seconds\n")
            return "timeout"
        except OSError as e:
            cmd_log.write(f"\nkmersweep: command could not be executed ({e})\n")
            return "failed"
        cmd_log.write("\n\n")
    if process.returncode != 0:
        return "failed"
    return "OK"


def remove_files(file_paths):
    for file_path in file_paths:
        Path(file_path).unlink(missing_ok=True)


def quit_with_error(message):
    """
    Displays the given message and ends the program's execution.
    """
    log.log(red(f"\nERROR: {message}\n"), 0, stderr=True)
    sys.exit(os.EX_SOFTWARE)


def successful_exit(message):
    """
    Exit the program showing a message with a successful status for UNIX
    """
    log.log_section_header(message)
    log.log("")
    sys.exit(os.EX_OK)


####################################################################################################
################################################################ FUNCTIONS TO VERIFY SOFTWARE STATUS
def format_dep_msg(dep_text, dep_version, dep_status):
    if dep_status == "not used":
        return f"{dep_text}{dim(dep_status)}"
    elif dep_status == "OK":
        return f'{dep_text}{bold(f"v{dep_version}")} {bold_green(dep_status)}'
    else:
        return f"{dep_text}{bold_red(dep_status)}"


def version_from_output(output):
    """
    First dotted version number printed by a program, e.g. '1.2.10' from 'Version 1.2.10'
    """
    match = re.search(r"(\d+(?:\.\d+)+)", output)
    return match.group(1) if match else "unknown"


def tool_path_version(tool_path, version_args):
    """
    Returns the full path, version and status of an external program. Some programs print their
    version only with the usage message and exit with a non-zero status, so the status is not used
    """
    found_tool_path = shutil.which(tool_path)
    if found_tool_path is None:
        return tool_path, "", "not found"
    command = [found_tool_path] + version_args
    process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    output = process.communicate()[0].decode(errors="replace")
    return found_tool_path, version_from_output(output), "OK"


def scythe_path_version(scythe_path):
    return tool_path_version(scythe_path, ["--version"])


def sickle_path_version(sickle_path):
    return tool_path_version(sickle_path, ["--version"])


def fastq_join_path_version(fastq_join_path):
    # fastq-join prints 'Version: x.y.z' within its usage message
    return tool_path_version(fastq_join_path, [])


def velvet_path_version(velvet_path):
    # velveth and velvetg print 'Version x.y.z' when called without arguments
    return tool_path_version(velvet_path, [])


def blast_path_version(blast_path):
    return tool_path_version(blast_path, ["-version"])


def python_library_check(library_name):
    library_found = bool(util.find_spec(library_name))
    library_version = ""
    library_status = "not found"
    if library_found:
        library = importlib.import_module(library_name)
        library_version = library.__version__
        library_status = "OK"
    return library_found, library_version, library_status


####################################################################################################
######## HELP AND TEXT FORMATTING, ADAPTED FROM UNICYCLER'S FUNCTIONS (https://github.com/rrwick/Unicycler)

END_FORMATTING = "\033[0m"
BOLD = "\033[1m"
RED = "\033[31m"
GREEN = "\033[32m"
DIM = "\033[2m"


class MyHelpFormatter(argparse.HelpFormatter):
    """
    Custom formatter for argparse, shows default values and bold section headings. Descriptions
    starting with 'R|' are printed verbatim
    """
    def __init__(self, prog):
        terminal_width = shutil.get_terminal_size().columns
        os.environ["COLUMNS"] = str(terminal_width)
        max_help_position = min(max(24, terminal_width // 3), 40)
        try:
            self.colours = int(subprocess.check_output(["tput", "colors"]).decode().strip())
        except (ValueError, subprocess.CalledProcessError, FileNotFoundError, AttributeError):
            self.colours = 1
        super().__init__(prog, max_help_position=max_help_position)

    def _get_help_string(self, action):
        help_text = action.help
        if (action.default != argparse.SUPPRESS and "default" not in help_text.lower()
                and action.default is not None and action.default is not False):
            help_text += f" (default: {action.default})"
        return help_text

    def start_section(self, heading):
        if self.colours > 1:
            heading = f"{BOLD}{heading}{END_FORMATTING}"
        super().start_section(heading)

    def _fill_text(self, text, width, indent):
        if text.startswith("R|"):
            return "".join(indent + line for line in text[2:].splitlines(keepends=True))
        else:
            return argparse.HelpFormatter._fill_text(self, text, width, indent)


def bold_green(text):
    return f"{GREEN}{BOLD}{text}{END_FORMATTING}"


def red(text):
    return f"{RED}{text}{END_FORMATTING}"


def bold_red(text):
    return f"{RED}{BOLD}{text}{END_FORMATTING}"


def bold(text):
    return f"{BOLD}{text}{END_FORMATTING}"


def dim(text):
    return f"{DIM}{text}{END_FORMATTING}"
