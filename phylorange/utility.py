#! /usr/bin/env python

##############################################################################
##
##  Copyright 2010-2014 Jeet Sukumaran.
##  All rights reserved.
##
##  Redistribution and use in source and binary forms, with or without
##  modification, are permitted provided that the following conditions are met:
##
##      * Redistributions of source code must retain the above copyright
##        notice, this list of conditions and the following disclaimer.
##      * Redistributions in binary form must reproduce the above copyright
##        notice, this list of conditions and the following disclaimer in the
##        documentation and/or other materials provided with the distribution.
##      * The names of its contributors may not be used to endorse or promote
##        products derived from this software without specific prior written
##        permission.
##
##  THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS
##  IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
##  THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR
##  PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL JEET SUKUMARAN OR MARK T. HOLDER
##  BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
##  CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
##  SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
##  INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
##  CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
##  ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
##  POSSIBILITY OF SUCH DAMAGE.
##
##############################################################################

import os
import logging
import argparse

_LOGGING_LEVEL_ENVAR = "PHYLORANGE_LOGGING_LEVEL"

class RunLogger(object):

    def __init__(self, **kwargs):
        self.name = kwargs.get("name", "RunLog")
        self._log = logging.getLogger(self.name)
        self._log.setLevel(logging.DEBUG)
        self.handlers = []
        if kwargs.get("log_to_stderr", True):
            handler1 = logging.StreamHandler()
            stderr_logging_level = self.get_logging_level(kwargs.get("stderr_logging_level", logging.INFO))
            handler1.setLevel(stderr_logging_level)
            handler1.setFormatter(self.get_default_formatter())
            self._log.addHandler(handler1)
            self.handlers.append(handler1)
        if kwargs.get("log_to_file", True):
            log_stream = kwargs.get("log_stream", None)
            if log_stream is None:
                log_stream = open(kwargs.get("log_path", self.name + ".log"), "w")
            handler2 = logging.StreamHandler(log_stream)
            file_logging_level = self.get_logging_level(kwargs.get("file_logging_level", logging.DEBUG))
            handler2.setLevel(file_logging_level)
            handler2.setFormatter(self.get_default_formatter())
            self._log.addHandler(handler2)
            self.handlers.append(handler2)
        self._system = None

    def _get_system(self):
        return self._system

    def _set_system(self, system):
        self._system = system
        if self._system is None:
            for handler in self.handlers:
                handler.setFormatter(self.get_default_formatter())
        else:
            for handler in self.handlers:
                handler.setFormatter(self.get_reconstruction_node_formatter())

    system = property(_get_system, _set_system)

    def get_logging_level(self, level=None):
        """
        Resolves ``level`` (a numeric level, a level name, or `None` to
        consult the PHYLORANGE_LOGGING_LEVEL environment variable) to a
        numeric logging level; unrecognized names give NOTSET.
        """
        if isinstance(level, int):
            return level
        if level is None:
            level = os.environ.get(_LOGGING_LEVEL_ENVAR, "NOTSET")
        resolved = logging.getLevelName(str(level).upper())
        if isinstance(resolved, int):
            return resolved
        return logging.NOTSET

    def get_default_formatter(self):
        f = logging.Formatter("[%(asctime)s] %(message)s")
        f.datefmt='%Y-%m-%d %H:%M:%S'
        return f

    def get_reconstruction_node_formatter(self):
        f = logging.Formatter("[%(asctime)s] Node %(current_node)s: %(message)s")
        f.datefmt='%Y-%m-%d %H:%M:%S'
        return f

    def supplemental_info_d(self):
        if self._system is not None:
            current_node = getattr(self._system, "current_node", None)
            return {
                    "current_node" : "-" if current_node is None else current_node,
                    }
        else:
            return None

    def log(self, level, msg, *args):
        self._log.log(level, msg, *args, extra=self.supplemental_info_d())

    def debug(self, msg, *args):
        self.log(logging.DEBUG, msg, *args)

    def info(self, msg, *args):
        self.log(logging.INFO, msg, *args)

    def warning(self, msg, *args):
        self.log(logging.WARNING, msg, *args)

    def error(self, msg, *args):
        self.log(logging.ERROR, msg, *args)

    def critical(self, msg, *args):
        self.log(logging.CRITICAL, msg, *args)

def get_quiet_logger(name):
    """
    Returns a RunLogger that installs no handlers of its own, so that its
    messages only reach whatever the standard ``logging`` hierarchy has been
    configured with.
    """
    return RunLogger(name=name, log_to_stderr=False, log_to_file=False)

def get_run_logger(name,
        log_path,
        stderr_logging_level="info",
        file_logging_level="debug"):
    """
    Returns a RunLogger writing to the screen and to ``log_path``. A logging
    level of 'none' or `None` suppresses the corresponding output.
    """
    if stderr_logging_level is None or stderr_logging_level.lower() == "none":
        log_to_stderr = False
    else:
        log_to_stderr = True
    if file_logging_level is None or file_logging_level.lower() == "none":
        log_to_file = False
    else:
        log_to_file = True
    return RunLogger(
            name=name,
            log_path=log_path,
            log_to_stderr=log_to_stderr,
            stderr_logging_level=stderr_logging_level,
            log_to_file=log_to_file,
            file_logging_level=file_logging_level,
            )

def logging_arg_parser():
    parser = argparse.ArgumentParser(add_help=False)
    run_options = parser.add_argument_group("Run Options")
    run_options.add_argument("--file-logging-level",
            default="debug",
            help="Message level threshold for file logs.")
    run_options.add_argument("--stderr-logging-level",
            default="info",
            help="Message level threshold for screen logs.")
    return parser
