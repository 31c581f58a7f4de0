from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path

import httpx

from quizdeck.client.api import ApiError, QuizdeckClient
from quizdeck.client.config import ClientSettings, clear_token, load_token, save_token
from quizdeck.client.session import AttemptSession, SessionState, SubmitReason


FOCUS_NOTICE = (
    "Leaving the quiz (Ctrl-C) submits your answers immediately. "
    "This check is advisory only and not a security control."
)


def format_duration(seconds: float) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def _print_quiz_page(data: dict) -> None:
    items = data.get("items") or []
    if not items:
        print("No quizzes found.")
        return
    for q in items:
        author = (q.get("created_by") or {}).get("username") or "?"
        visibility = "public" if q.get("is_public") else "private"
        category = q.get("category") or "-"
        print(f"{q['id']}  {q['title']}")
        print(
            f"    {q['question_count']} questions, {q['total_points']} pts, {q['time_limit']} min, "
            f"{category}, {visibility}, by {author}"
        )
    print(f"page {data['current_page']}/{max(1, data['total_pages'])} ({data['total']} total)")


def _print_quiz(quiz: dict) -> None:
    print(quiz["title"])
    if quiz.get("description"):
        print(quiz["description"])
    print(f"{quiz['question_count']} questions, {quiz['total_points']} points, {quiz['time_limit']} minutes")
    for q in quiz.get("questions") or []:
        print(f"\n{q['index'] + 1}. {q['question_text']} ({q['points']} pts)")
        for i, opt in enumerate(q["options"]):
            mark = "*" if q.get("correct_answer") == i else " "
            print(f"   {mark} {i + 1}) {opt}")


def _print_attempt(attempt: dict) -> None:
    title = attempt.get("quiz_title") or attempt["quiz_id"]
    print(f"{title}: {attempt['score']}/{attempt['total_points']} ({attempt['percentage']}%)")
    print(f"time spent {format_duration(attempt['time_spent'])}, completed {attempt['completed_at']}")
    if attempt.get("forced_submit"):
        print("submitted automatically (time ran out or the quiz lost focus)")

    questions = {q["index"]: q for q in attempt.get("questions") or []}
    for a in attempt.get("answers") or []:
        q = questions.get(a["question_index"])
        verdict = "correct" if a["is_correct"] else "wrong"
        text = q["question_text"] if q else f"question {a['question_index'] + 1}"
        print(f"\n{a['question_index'] + 1}. {text} [{verdict}, {a['points']} pts]")
        if q is None:
            continue
        selected = a["selected_option"]
        picked = q["options"][selected] if 0 <= selected < len(q["options"]) else "(no answer)"
        print(f"   your answer: {picked}")
        if not a["is_correct"] and q.get("correct_answer") is not None:
            print(f"   correct answer: {q['options'][q['correct_answer']]}")


def _print_attempt_page(data: dict) -> None:
    items = data.get("items") or []
    if not items:
        print("No attempts yet.")
        return
    for a in items:
        who = (a.get("user") or {}).get("username") or "?"
        forced = " forced" if a.get("forced_submit") else ""
        print(
            f"{a['id']}  {who}  {a['score']}/{a['total_points']} ({a['percentage']}%)  "
            f"{format_duration(a['time_spent'])}  {a['completed_at']}{forced}"
        )
    print(f"page {data['current_page']}/{max(1, data['total_pages'])} ({data['total']} total)")


def _print_analytics(data: dict) -> None:
    print(f"{data['quiz_title']} - analytics")
    print(f"attempts: {data['total_attempts']} by {data['unique_takers']} takers")
    print(f"average score: {data['average_score']} ({data['average_percentage']}%), best {data['best_percentage']}%")
    print(f"average time: {format_duration(data['average_time_spent'])}")
    print(f"forced submissions: {data['forced_submissions']}")
    for q in data.get("questions") or []:
        print(f"  {q['question_index'] + 1}. {q['question_text']}: {q['correct']}/{q['answered']} correct ({q['correct_rate'] * 100:.0f}%)")


def _read_json(path: str) -> dict:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


def _confirm(prompt: str) -> bool:
    return input(f"{prompt} [y/N] ").strip().lower() in {"y", "yes"}


# -- commands ---------------------------------------------------------------


def _cmd_register(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    password = args.password or getpass.getpass("Password: ")
    save_token(cfg.token_file, api.register(args.username, args.email, password))
    print(f"registered and logged in as {args.username}")
    return 0


def _cmd_login(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    password = args.password or getpass.getpass("Password: ")
    save_token(cfg.token_file, api.login(args.username, password))
    print(f"logged in as {args.username}")
    return 0


def _cmd_logout(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    clear_token(cfg.token_file)
    print("logged out")
    return 0


def _cmd_whoami(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    me = api.me()
    print(f"{me['username']} <{me['email']}> ({me['role']})")
    return 0


def _cmd_list(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    _print_quiz_page(api.list_quizzes(args.page, args.limit, search=args.search, category=args.category))
    return 0


def _cmd_mine(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    _print_quiz_page(api.list_my_quizzes(args.page, args.limit, search=args.search, category=args.category))
    return 0


def _cmd_show(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    _print_quiz(api.get_quiz(args.quiz_id))
    return 0


def _cmd_create(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    quiz = api.create_quiz(_read_json(args.file))
    print(f"created quiz {quiz['id']}: {quiz['title']}")
    return 0


def _cmd_edit(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    quiz = api.update_quiz(args.quiz_id, _read_json(args.file))
    print(f"updated quiz {quiz['id']}: {quiz['title']}")
    return 0


def _cmd_delete(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    if not args.yes and not _confirm(f"Delete quiz {args.quiz_id} and all of its attempts?"):
        print("cancelled")
        return 1
    out = api.delete_quiz(args.quiz_id)
    print(f"quiz deleted ({out.get('attempts_deleted', 0)} attempts removed)")
    return 0


def _cmd_take(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    quiz = api.get_quiz(args.quiz_id)
    session = AttemptSession(quiz, lambda body: api.submit_attempt(quiz["id"], body))

    print(f"{quiz['title']} - {len(session.questions)} questions, {quiz['time_limit']} minutes")
    print("The timer starts with your first answer. Commands: 1-9 answer, n next, p previous, s submit.")
    print(FOCUS_NOTICE)

    try:
        while session.state != SessionState.done:
            if session.error is not None:
                print(f"\nFailed to submit quiz attempt: {session.error}")
                session.resume()

            q = session.questions[session.current_index]
            chosen = session.answers[session.current_index]
            print(
                f"\n[{session.current_index + 1}/{len(session.questions)}] "
                f"time left {format_duration(session.remaining)}, answered {session.answered_count()}"
            )
            print(q["question_text"])
            for i, opt in enumerate(q["options"]):
                mark = ">" if chosen == i else " "
                print(f" {mark} {i + 1}) {opt}")

            raw = input("> ").strip().lower()
            if session.state == SessionState.done:
                break

            if raw.isdigit():
                try:
                    session.select(int(raw) - 1)
                except ValueError:
                    print("no such option")
                    continue
                session.next()
            elif raw == "n":
                session.next()
            elif raw == "p":
                session.previous()
            elif raw == "s":
                confirmation = session.request_submit()
                if confirmation is None:
                    continue
                if _confirm(confirmation.prompt):
                    session.confirm_submit()
                else:
                    session.cancel_submit()
            elif session.state == SessionState.in_progress:
                # Unknown input counts as a timer check so an expired quiz is sent promptly.
                session.check_deadline()
    except (KeyboardInterrupt, EOFError):
        print()
        session.focus_lost("interrupt")

    if session.result is None:
        if session.error is not None:
            print(f"Failed to submit quiz attempt: {session.error}", file=sys.stderr)
            return 1
        print("quiz left before it started, nothing submitted")
        return 0

    if session.submit_reason == SubmitReason.timeout:
        print("\nTime is up, your answers were submitted automatically.")
    elif session.submit_reason == SubmitReason.focus_lost:
        print("\nQuiz auto-submitted because you left it.")

    _print_attempt(api.get_attempt(session.result["id"]))
    return 0


def _cmd_result(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    _print_attempt(api.get_attempt(args.attempt_id))
    return 0


def _cmd_attempts(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    if args.all:
        data = api.list_quiz_attempts(args.quiz_id, args.page, args.limit)
    else:
        data = api.list_my_attempts(args.quiz_id, args.page, args.limit)
    _print_attempt_page(data)
    return 0


def _cmd_analytics(api: QuizdeckClient, args, cfg: ClientSettings) -> int:
    _print_analytics(api.quiz_analytics(args.quiz_id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="quizdeck", description="Quizdeck terminal client")
    p.add_argument("--api-url", default=None, help="API base URL (default: QUIZDECK_API_URL)")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    def add(name: str, handler, help_text: str) -> argparse.ArgumentParser:
        sp = sub.add_parser(name, help=help_text)
        sp.set_defaults(handler=handler)
        return sp

    def paging(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--page", type=int, default=1)
        sp.add_argument("--limit", type=int, default=10)

    sp = add("register", _cmd_register, "create an account")
    sp.add_argument("username")
    sp.add_argument("email")
    sp.add_argument("--password")

    sp = add("login", _cmd_login, "log in with username or email")
    sp.add_argument("username")
    sp.add_argument("--password")

    add("logout", _cmd_logout, "forget the stored token")
    add("whoami", _cmd_whoami, "show the logged in user")

    for name, handler, help_text in (
        ("list", _cmd_list, "browse public quizzes"),
        ("mine", _cmd_mine, "list your own quizzes"),
    ):
        sp = add(name, handler, help_text)
        paging(sp)
        sp.add_argument("--search")
        sp.add_argument("--category")

    sp = add("show", _cmd_show, "show one quiz")
    sp.add_argument("quiz_id")

    sp = add("create", _cmd_create, "create a quiz from a JSON file")
    sp.add_argument("--file", required=True)

    sp = add("edit", _cmd_edit, "update a quiz from a JSON file")
    sp.add_argument("quiz_id")
    sp.add_argument("--file", required=True)

    sp = add("delete", _cmd_delete, "delete a quiz and its attempts")
    sp.add_argument("quiz_id")
    sp.add_argument("--yes", action="store_true")

    sp = add("take", _cmd_take, "take a quiz against the clock")
    sp.add_argument("quiz_id")

    sp = add("result", _cmd_result, "review a graded attempt")
    sp.add_argument("attempt_id")

    sp = add("attempts", _cmd_attempts, "list attempts on a quiz")
    sp.add_argument("quiz_id")
    sp.add_argument("--all", action="store_true", help="every taker's attempts (quiz owner only)")
    paging(sp)

    sp = add("analytics", _cmd_analytics, "attempt statistics for a quiz you own")
    sp.add_argument("quiz_id")

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    cfg = ClientSettings()
    timeout = httpx.Timeout(connect=cfg.timeout_connect, read=cfg.timeout_read, write=cfg.timeout_read, pool=cfg.timeout_connect)
    api = QuizdeckClient(args.api_url or cfg.api_url, token=load_token(cfg.token_file), timeout=timeout)
    try:
        return int(args.handler(api, args, cfg))
    except ApiError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    finally:
        api.close()


if __name__ == "__main__":
    sys.exit(main())
