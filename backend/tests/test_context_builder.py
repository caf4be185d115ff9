"""Tests for conversation context assembly and the chat heuristics."""

from datetime import datetime, timezone

from mindcoach.schemas.store import Chat, Message, Milestone, Resource, Roadmap
from mindcoach.services.context_builder import (
    CLOSING_REMINDER,
    GENERAL_PROMPT,
    ContextBuilder,
    ConversationContext,
    detect_weak_areas_from_chat,
    extract_last_topic,
    generate_chat_title,
    generate_system_prompt,
    has_completion_signal,
)
from mindcoach.services.store import MemoryKeyValueBackend, Store

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def msg(role, content):
    return Message(role=role, content=content)


def make_store():
    return Store(MemoryKeyValueBackend(), clock=lambda: NOW)


def seeded_project(store, resources=()):
    roadmap = Roadmap(
        title="Python Path",
        milestones=[
            Milestone(id=1, title="Syntax", completed=True),
            Milestone(id=2, title="Functions", objective="Write functions"),
            Milestone(id=3, title="Classes"),
        ],
    )
    return store.create_project(
        "Python", description="Learn Python", level="beginner", roadmap=roadmap, resources=list(resources),
    )


class TestWeakAreaHeuristic:
    """Test weak-area detection from chat history."""

    def test_word_counted_twice_becomes_weak_area(self):
        """A long word explained twice before confusion becomes a weak area."""
        messages = [
            msg("assistant", "Recursion needs a base condition"),
            msg("user", "I'm confused"),
            msg("assistant", "Think about the condition again"),
            msg("user", "I don't understand"),
        ]
        assert detect_weak_areas_from_chat(messages) == ["condition"]

    def test_short_words_are_ignored(self):
        """Words of eight characters or fewer never count."""
        messages = [
            msg("assistant", "a loop repeats"),
            msg("user", "confused"),
            msg("assistant", "a loop repeats"),
            msg("user", "confused"),
        ]
        assert detect_weak_areas_from_chat(messages) == []

    def test_needs_preceding_assistant_message(self):
        """Confusion with no explanation before it finds nothing."""
        messages = [msg("user", "confused about generators"), msg("user", "still confused")]
        assert detect_weak_areas_from_chat(messages) == []

    def test_order_of_first_crossing_and_cap(self):
        """Weak areas keep first-crossing order and stop at five."""
        words = ["alpha_word", "bravo_word", "charlie_wd", "delta_word", "echo_words", "foxtrot_wd"]
        explanation = " ".join(words)
        messages = [
            msg("assistant", explanation),
            msg("user", "what does that mean"),
            msg("assistant", explanation),
            msg("user", "explain again please"),
        ]
        assert detect_weak_areas_from_chat(messages) == words[:5]


class TestCompletionSignal:
    """Test completion-phrase detection."""

    def test_recent_assistant_praise(self):
        """Praise in a recent assistant turn is a completion signal."""
        messages = [msg("user", "x")] * 3 + [msg("assistant", "Great job, you got it!")]
        assert has_completion_signal(messages)

    def test_user_praise_does_not_count(self):
        """Praise from the user is not a signal."""
        assert not has_completion_signal([msg("user", "well done me")])

    def test_old_signal_is_outside_window(self):
        """Praise older than the last five messages is ignored."""
        messages = [msg("assistant", "Well done")] + [msg("user", "next")] * 5
        assert not has_completion_signal(messages)


class TestMilestoneUpdate:
    """Test milestone updates driven by chat progress."""

    def setup_method(self):
        self.store = make_store()
        self.project = seeded_project(self.store)
        self.builder = ContextBuilder(self.store)

    def milestone(self, milestone_id):
        project = self.store.get_project(self.project.id)
        return next(m for m in project.roadmap.milestones if m.id == milestone_id)

    def test_short_chat_is_noop(self):
        """Chats under five messages change nothing."""
        messages = [msg("user", "hi"), msg("assistant", "Great job")]
        assert self.builder.update_milestone_from_chat(self.project.id, "2", messages) is None
        assert self.milestone("2").status == "not-started"

    def test_confusion_marks_struggling(self):
        """Detected weak areas mark the milestone struggling."""
        messages = [
            msg("assistant", "Decorators wrap functions"),
            msg("user", "confused"),
            msg("assistant", "Decorators return wrappers"),
            msg("user", "I don't understand"),
            msg("assistant", "Let's try an example"),
        ]
        updates = self.builder.update_milestone_from_chat(self.project.id, "2", messages)
        assert updates["status"] == "struggling"
        assert updates["weak_areas"] == ["Decorators"]
        milestone = self.milestone("2")
        assert milestone.status == "struggling"
        assert milestone.weak_areas == ["Decorators"]

    def test_completion_signal_completes(self):
        """A completion phrase completes the milestone and updates project progress."""
        messages = [msg("user", "q"), msg("assistant", "a")] * 2 + [msg("assistant", "You got it, well done")]
        updates = self.builder.update_milestone_from_chat(self.project.id, "2", messages)
        assert updates["status"] == "completed"
        milestone = self.milestone("2")
        assert milestone.completed and milestone.progress == 100
        assert self.store.get_project(self.project.id).progress == 67

    def test_six_message_chat_ending_in_praise_completes(self):
        """Six calm messages ending with "great job" complete the milestone."""
        messages = [
            msg("user", "How do I write a loop?"),
            msg("assistant", "Use for item in items."),
            msg("user", "Like this: for n in nums: print(n)"),
            msg("assistant", "Yes, that prints each number."),
            msg("user", "And with range?"),
            msg("assistant", "Exactly right, great job!"),
        ]
        updates = self.builder.update_milestone_from_chat(self.project.id, "2", messages)
        assert updates == {"status": "completed", "completed": True, "progress": 100}
        milestone = self.milestone("2")
        assert milestone.status == "completed"
        assert milestone.completed and milestone.progress == 100

    def test_otherwise_in_progress(self):
        """Otherwise progress is ten per message."""
        messages = [msg("user", "q"), msg("assistant", "a")] * 3
        updates = self.builder.update_milestone_from_chat(self.project.id, "2", messages)
        assert updates == {"status": "in-progress", "progress": 60}
        assert self.milestone("2").progress == 60

    def test_progress_caps_at_ninety(self):
        """Heuristic progress never passes 90."""
        messages = [msg("user", "q"), msg("assistant", "a")] * 10
        updates = self.builder.update_milestone_from_chat(self.project.id, "2", messages)
        assert updates["progress"] == 90


class TestTitlesAndTopics:
    """Test chat titles and last-topic extraction."""

    def test_short_message_is_the_title(self):
        """Five words or fewer become the title as is."""
        assert generate_chat_title("Teach me Rust") == "Teach me Rust"

    def test_long_message_is_truncated(self):
        """Longer messages keep five words and an ellipsis."""
        assert generate_chat_title("I want to learn machine learning fast") == "I want to learn machine..."

    def test_last_topic(self):
        """The last user message, cut to 100 characters, is the topic."""
        messages = [msg("user", "first"), msg("assistant", "reply"), msg("user", "y" * 150)]
        assert extract_last_topic(messages) == "y" * 100
        assert extract_last_topic([msg("assistant", "only me")]) is None


class TestSystemPrompt:
    """Test general and project system prompts."""

    def test_general_prompt(self):
        """The general prompt only gains a last-discussion line."""
        assert generate_system_prompt(ConversationContext(), "general") == GENERAL_PROMPT
        prompt = generate_system_prompt(ConversationContext(last_topic="sorting"), "general")
        assert prompt.endswith("LAST DISCUSSION: sorting\n")

    def test_project_prompt_block_order(self):
        """Project prompt blocks appear in their fixed order."""
        context = ConversationContext(
            project_title="Python",
            project_description="Learn Python",
            project_level="beginner",
            progress=33,
            current_milestone=Milestone(id=2, title="Functions", objective="Write functions"),
            completed_milestones=["Syntax"],
            next_milestone=Milestone(id=3, title="Classes"),
            weak_areas=["closures"],
            relevant_resources=[Resource(title="Docs", url="https://docs.python.org", type="doc")],
            is_resuming=True,
            last_topic="lambdas",
        )
        prompt = generate_system_prompt(context, "project")

        markers = [
            'helping with the project: "Python"',
            "Progress: 33%",
            'CURRENT MILESTONE: "Functions"',
            "COMPLETED MILESTONES: Syntax",
            'NEXT UP: "Classes"',
            "WEAK AREAS (revisit when needed): closures",
            "- Docs (doc)",
            "LAST DISCUSSION: lambdas",
        ]
        positions = [prompt.index(marker) for marker in markers]
        assert positions == sorted(positions)
        assert prompt.endswith(CLOSING_REMINDER)

    def test_prompt_is_pure(self):
        """The same context always gives the same prompt."""
        context = ConversationContext(project_title="Python", weak_areas=["loops"])
        assert generate_system_prompt(context, "project") == generate_system_prompt(context, "project")

    def test_last_topic_needs_resuming(self):
        """Project prompts mention the last topic only when resuming."""
        prompt = generate_system_prompt(ConversationContext(last_topic="lambdas"), "project")
        assert "LAST DISCUSSION" not in prompt


class TestContextBuilder:
    """Test context assembly from the store."""

    def test_general_context_without_chat(self):
        """No chat id gives an empty general context."""
        context = ContextBuilder(make_store()).build_general_chat_context()
        assert context.chat_id is None

    def test_general_context_from_chat(self):
        """A stored chat supplies history and last topic."""
        store = make_store()
        store.save_chat(Chat(
            id="c1", messages=[msg("user", "What is a monad?")],
            created_at=NOW.isoformat(), updated_at=NOW.isoformat(),
        ))
        context = ContextBuilder(store).build_general_chat_context("c1")
        assert context.chat_id == "c1"
        assert context.last_topic == "What is a monad?"
        assert len(context.recent_messages) == 1

    def test_project_context_defaults_to_first_incomplete_milestone(self):
        """Without a milestone id the first incomplete one is current."""
        store = make_store()
        resource = Resource(title="Functions guide", url="https://a", milestone_ids=["2"])
        other = Resource(title="Classes guide", url="https://b", milestone_ids=["3"])
        project = seeded_project(store, resources=[resource, other])

        context = ContextBuilder(store).build_project_chat_context(project.id)

        assert context.project_title == "Python"
        assert context.completed_milestones == ["Syntax"]
        assert context.current_milestone.title == "Functions"
        assert context.next_milestone.title == "Classes"
        assert [r.title for r in context.relevant_resources] == ["Functions guide"]

    def test_explicit_milestone_and_chat(self):
        """An explicit milestone and chat drive resumption and weak areas."""
        store = make_store()
        project = seeded_project(store)
        store.save_project_chat(project.id, Chat(
            id="pc", messages=[msg("user", "inheritance?")], weak_areas=["super"],
            created_at=NOW.isoformat(), updated_at=NOW.isoformat(),
        ))

        context = ContextBuilder(store).build_project_chat_context(project.id, "pc", "3")

        assert context.current_milestone.title == "Classes"
        assert context.next_milestone is None
        assert context.is_resuming is True
        assert context.last_topic == "inheritance?"
        assert context.weak_areas == ["super"]

    def test_unknown_project_gives_empty_context(self):
        """An unknown project gives an empty context."""
        context = ContextBuilder(make_store()).build_project_chat_context("missing")
        assert context.project_id is None
