"""Tests for pronoun resolution."""

from context_kernel.memory.store import EntityStore
from context_kernel.reference.resolver import ReferenceResolver, demonstrative_category


class TestResolvePronoun:
    def setup_method(self):
        self.store = EntityStore()
        self.resolver = ReferenceResolver(self.store)

    def test_binding_then_person_fallback(self):
        sam = self.store.add("Sam", "person")
        self.resolver.register_pronoun("he", sam)

        assert self.resolver.resolve_pronoun("he") == sam
        assert self.resolver.resolution_count == 1
        assert self.resolver.unresolved_count == 0

        # No binding for "she": the only person-like entity is a guess
        assert self.resolver.resolve_pronoun("she") == sam
        assert self.resolver.resolution_count == 1
        assert self.resolver.unresolved_count == 1

    def test_binding_is_case_insensitive(self):
        sam = self.store.add("Sam", "person")
        self.resolver.register_pronoun("He", sam)
        assert self.resolver.resolve_pronoun("HE") == sam

    def test_no_entities(self):
        assert self.resolver.resolve_pronoun("he") is None
        assert self.resolver.resolve_pronoun(None) is None
        assert self.resolver.unresolved_count == 1

    def test_demonstrative_matches_type(self):
        dune = self.store.add("Dune", "book")
        self.resolver.register_pronoun("Dune", dune)

        assert self.resolver.resolve_pronoun("it") == dune
        assert self.resolver.resolution_count == 1
        assert self.resolver.unresolved_count == 0

    def test_demonstrative_prefers_most_recent(self):
        dune = self.store.add("Dune", "book")
        chess = self.store.add("Chess", "game")
        self.resolver.register_pronoun("dune", dune)
        self.resolver.register_pronoun("chess", chess)
        assert self.resolver.resolve_pronoun("it") == chess

    def test_last_mentioned_fallback(self):
        paris = self.store.add("Paris", "city")
        self.resolver.register_pronoun("paris", paris)

        # "it" wants an object-like type; Paris is only the last mention
        assert self.resolver.resolve_pronoun("it") == paris
        assert self.resolver.unresolved_count == 1

    def test_resolution_touches_entity(self):
        sam = self.store.add("Sam", "person")
        self.resolver.register_pronoun("he", sam)
        self.resolver.resolve_pronoun("he")
        assert sam.access_count == 1

    def test_statistics(self):
        sam = self.store.add("Sam", "person")
        self.resolver.register_pronoun("he", sam)
        self.resolver.resolve_pronoun("he")
        self.resolver.resolve_pronoun("she")

        stats = self.resolver.get_statistics()
        assert stats["total_pronouns"] == 1
        assert stats["resolution_rate"] == 0.5

    def test_update_pronoun_reference(self):
        sam = self.store.add("Sam", "person")
        self.resolver.register_pronoun("he", sam)
        self.resolver.update_pronoun_reference("he", "they", sam)
        assert self.resolver.registered_pronouns() == ["they"]


class TestRecency:
    def test_general_list_is_bounded_and_deduplicated(self):
        store = EntityStore()
        resolver = ReferenceResolver(store, recent_limit=3)
        entities = [store.add(f"e{i}", "object") for i in range(4)]
        for entity in entities:
            resolver.register_pronoun(entity.name, entity)
        resolver.register_pronoun("again", entities[2])

        recent = resolver.recent_entities()
        assert [e.name for e in recent] == ["e2", "e3", "e1"]

    def test_category_lists(self):
        store = EntityStore()
        resolver = ReferenceResolver(store)
        home = store.add("Home", "place")
        resolver.register_pronoun("there", home)

        assert resolver.recent_places() == [home]
        assert resolver.recent_objects() == []
        assert demonstrative_category("those") == "topic"
        assert demonstrative_category("he") is None


class TestRemovalCleanup:
    def test_removed_entity_is_forgotten(self):
        store = EntityStore()
        resolver = ReferenceResolver(store)
        dune = store.add("Dune", "book")
        resolver.register_pronoun("it", dune)

        store.remove(dune.id)

        assert resolver.registered_pronouns() == []
        assert resolver.recent_entities() == []
        assert resolver.last_mentioned is None
        assert resolver.resolve_pronoun("it") is None

    def test_binding_keyed_by_name_is_dropped(self):
        store = EntityStore()
        resolver = ReferenceResolver(store)
        sam = store.add("Sam", "person")
        resolver.register_pronoun("sam", sam)
        store.remove(sam.id)
        assert "sam" not in resolver.registered_pronouns()


class TestText:
    def setup_method(self):
        self.store = EntityStore()
        self.resolver = ReferenceResolver(self.store)

    def test_is_pronoun(self):
        assert self.resolver.is_pronoun("Themselves")
        assert not self.resolver.is_pronoun("banana")
        assert not self.resolver.is_pronoun(None)

    def test_multi_word_phrases_are_not_pronouns(self):
        assert not self.resolver.is_pronoun("no one")
        assert self.resolver.find_pronouns("No one saw it") == ["it"]

    def test_find_pronouns(self):
        assert self.resolver.find_pronouns("Is it here?") == ["it", "here"]

    def test_resolve_pronouns_in_text(self):
        sam = self.store.add("Sam", "person")
        dune = self.store.add("Dune", "book")
        self.resolver.register_pronoun("he", sam)
        self.resolver.register_pronoun("it", dune)

        result = self.resolver.resolve_pronouns_in_text("He said it was great!")
        assert result == "Sam said Dune was great!"

    def test_unresolvable_pronouns_are_left(self):
        assert self.resolver.resolve_pronouns_in_text("Did she go?") == "Did she go?"
        assert self.resolver.resolve_pronouns_in_text(None) is None

    def test_context_hint_used_when_resolution_fails(self):
        dune = self.store.add("Dune", "book")
        note = self.store.add("Note", "object")
        self.resolver.register_pronoun("dune", dune)
        self.resolver.register_pronoun("note", note)
        self.store.remove(note.id)
        assert self.resolver.last_mentioned is None

        entity = self.resolver.resolve_pronoun_in_context("she", "book")
        assert entity == dune
        assert self.resolver.resolve_pronoun_in_context("she") is None
