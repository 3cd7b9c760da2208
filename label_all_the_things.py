#!/usr/bin/env python3
"""
Creates GitHub labels from a JSON definition file on one or more repositories.

The label file is a JSON array of objects with the fields "name", "color" (six
hex digits without a "#" prefix) and an optional "description", exactly what
the GitHub "create a label" endpoint expects:

    [
        {"name": "bug", "color": "d73a4a", "description": "Something isn't working"}
    ]

Usage:

    $ ./label_all_the_things.py --token-file ~/.gh-token create --labels default.json acme/widgets acme/gadgets
"""

import argparse
import json
import logging
import os
import sys
import urllib.parse
from dataclasses import dataclass

import github
import requests

__version__ = "0.1.0"

# Used by the "create" command when no --labels flag is given
DEFAULT_LABELS_FILE = "default.json"

# All logs will use this format
LOG_FORMAT = "%(asctime)s [%(levelname)-7.7s]  %(message)s"

logger = logging.getLogger("label-all-the-things")


class LabelToolError(Exception):
    """Base class for every error that aborts the tool."""


class ConfigurationError(LabelToolError):
    pass


class LabelFileError(LabelToolError):
    pass


class LabelCreationError(LabelToolError):
    pass


@dataclass
class Label:
    name: str
    color: str
    description: str = ""


def setup_logging(verbose=False, github_requests_log=""):
    """
    Setup console logger and optionally a file logger for github requests.
    """
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    logFormatter = logging.Formatter(LOG_FORMAT)

    if not logger.handlers:
        consoleHandler = logging.StreamHandler()
        consoleHandler.setFormatter(logFormatter)
        logger.addHandler(consoleHandler)

    if github_requests_log != "":
        logger.debug(
            "Github requests will be appended to this file: %s", github_requests_log)
        ghlogger = logging.getLogger("github")
        ghlogger.setLevel(logging.DEBUG)
        log_path = os.path.abspath(github_requests_log)
        if not any(isinstance(h, logging.FileHandler) and h.baseFilename == log_path
                   for h in ghlogger.handlers):
            ghFileHandler = logging.FileHandler(log_path)
            ghFileHandler.setFormatter(logging.Formatter(LOG_FORMAT + "\n"))
            ghlogger.addHandler(ghFileHandler)

    return logger


def get_github_token(token="", token_file=""):
    """
    Returns the token given directly or, if there is none, the full contents of
    the token file. Returns "" when neither yields a token; the API will reject
    the requests later on.
    """
    if token:
        return token

    if token_file:
        try:
            # read raw bytes so neither newlines nor undecodable bytes are altered
            with open(token_file, "rb") as f:
                return f.read().decode("utf-8", "surrogateescape")
        except OSError as e:
            # an unreadable token file counts as "no token"
            logger.debug("Ignoring token file %s: %s", token_file, e)

    return ""


def parse_base_url(value):
    """
    Validates the --base-url flag and returns it without a trailing slash, or
    None if no alternate API root was requested.
    """
    if not value:
        return None

    try:
        parts = urllib.parse.urlsplit(value)
    except ValueError as e:
        raise ConfigurationError('invalid "base-url" value: %s' % e) from e

    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(
            'invalid "base-url" value: %r is not an absolute http(s) URL' % value)

    return value.rstrip("/")


def load_labels(path):
    """
    Reads the label definitions from the JSON file at "path".

    Only the first JSON value in the file is decoded and anything after it is
    ignored. A top-level null means no labels.
    """
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
        data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except OSError as e:
        raise LabelFileError(str(e)) from e
    except ValueError as e:
        raise LabelFileError("%s: %s" % (path, e)) from e

    if data is None:
        data = []
    if not isinstance(data, list):
        raise LabelFileError(
            "%s: expected a JSON array of labels, got %s" % (path, type(data).__name__))

    labels = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise LabelFileError(
                "%s: label #%d is not a JSON object" % (path, i))
        fields = {}
        for key in ("name", "color", "description"):
            value = item.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise LabelFileError(
                    "%s: label #%d: %r must be a string" % (path, i, key))
            fields[key] = value
        labels.append(Label(**fields))

    logger.debug("Loaded %d label(s) from %s", len(labels), path)
    return labels


def split_repo_spec(repo_spec):
    """
    Splits "owner/name" on the first slash. A spec without a slash yields an
    empty name which GitHub will refuse.
    """
    owner, _, name = repo_spec.partition("/")
    return owner, name


class LabelCreator:

    def __init__(self, token, base_url=None):
        """
        Prepares the github API client.
        """
        self.logger = logger

        # no retries and no write throttling between create calls
        kwargs = {
            "retry": None,
            "seconds_between_requests": None,
            "seconds_between_writes": None,
        }
        if token:
            kwargs["auth"] = github.Auth.Token(token)
        else:
            self.logger.debug("No github token given, sending requests unauthenticated")
        if base_url is not None:
            self.logger.debug("Using github API at %s", base_url)
            kwargs["base_url"] = base_url

        self.gh = github.Github(**kwargs)

    def _get_repo(self, repo_spec):
        owner, name = split_repo_spec(repo_spec)
        # lazy avoids a GET request for the repository itself
        return self.gh.get_repo("%s/%s" % (owner, name), lazy=True)

    def create_labels(self, repo_specs, labels):
        """
        Creates every label on every repository, repository by repository.
        Stops at the first failure.
        """
        for repo_spec in repo_specs:
            repo = self._get_repo(repo_spec)
            for label in labels:
                self.logger.debug("Creating label %r on %s", label.name, repo_spec)
                try:
                    repo.create_label(name=label.name, color=label.color,
                                      description=label.description)
                except (github.GithubException, requests.exceptions.RequestException) as e:
                    raise LabelCreationError("Error creating label %r on %s: %s" % (
                        label.name, repo_spec, e)) from e


def _make_creator(args):
    token = get_github_token(args.token, args.token_file)
    base_url = parse_base_url(args.base_url)
    return LabelCreator(token, base_url=base_url)


def do_create(args):
    labels = load_labels(args.labels)
    creator = _make_creator(args)
    creator.create_labels(args.repos, labels)


def build_parser(default_labels_file=DEFAULT_LABELS_FILE):
    parser = argparse.ArgumentParser(
        prog="label-all-the-things", description="Manipulate GitHub labels")
    parser.add_argument("--version", action="version",
                        version="%(prog)s " + __version__)
    parser.add_argument("--token", default="", help="GitHub API token")
    parser.add_argument("--token-file", default="",
                        help="GitHub API token file")
    parser.add_argument("--base-url", default="",
                        help="Base URL for GitHub API requests (e.g. https://ghe.example.com/api/v3)")
    parser.add_argument("--verbose", action="store_true", default=False,
                        help="If given, DEBUG info will be displayed")
    parser.add_argument("--github-requests-log", default="",
                        help="Append raw github requests to this file")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    create = subparsers.add_parser(
        "create", help="create labels from a definition file")
    create.add_argument("--labels", default=default_labels_file,
                        help="labels definition file (default: %(default)s)")
    create.add_argument("repos", nargs="*", metavar="owner/repo")
    create.set_defaults(func=do_create)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose,
                  github_requests_log=args.github_requests_log)
    try:
        args.func(args)
    except LabelToolError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
