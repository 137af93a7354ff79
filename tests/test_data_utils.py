"""Tests for corpus loading and saving."""

from __future__ import annotations

from pathlib import Path

import pytest

from splitkb.data_utils import Corpus, CorpusError, load_corpus, load_frequency_csv, save_corpus


class TestCorpus:
    def test_alphabet_orders_by_frequency_then_character(self) -> None:
        corpus = Corpus(characters={"b": 1.0, "a": 1.0, "c": 5.0, " ": 9.0, "ab": 3.0})
        assert corpus.alphabet() == ["c", "a", "b"]

    def test_top_characters_with_exclusions(self, small_corpus: Corpus) -> None:
        assert small_corpus.top_characters(3) == ["e", "t", "a"]
        assert small_corpus.top_characters(2, exclude={"e"}) == ["t", "a"]
        assert small_corpus.top_characters(-1) == []

    def test_empty(self, empty_corpus: Corpus, small_corpus: Corpus) -> None:
        assert empty_corpus.is_empty
        assert not small_corpus.is_empty
        assert Corpus(characters={"a": 0.0}).is_empty


class TestLoadJson:
    def test_load_json(self, tmp_path: Path) -> None:
        path = tmp_path / "corpus.json"
        path.write_text('{"language": "x", "characters": {"a": 2, "b": 1}, "bigrams": {"ab": 0.5}}',
                        encoding="utf-8")
        corpus = load_corpus(path)
        assert corpus.language == "x"
        assert corpus.characters == {"a": 2.0, "b": 1.0}
        assert corpus.bigrams == {"ab": 0.5}

    def test_wrong_length_keys_are_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "corpus.json"
        path.write_text('{"characters": {"a": 1, "bc": 1}, "bigrams": {"abc": 1, "ab": 1}}', encoding="utf-8")
        corpus = load_corpus(path)
        assert list(corpus.characters) == ["a"]
        assert list(corpus.bigrams) == ["ab"]

    def test_negative_frequency_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "corpus.json"
        path.write_text('{"characters": {"a": -1}}', encoding="utf-8")
        with pytest.raises(CorpusError, match="Negative"):
            load_corpus(path)

    def test_malformed_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "corpus.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CorpusError):
            load_corpus(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_corpus(tmp_path / "nope.json")


class TestLoadCsv:
    def test_columns_detected_keys_lowercased_and_summed(self, tmp_path: Path) -> None:
        path = tmp_path / "letters.csv"
        path.write_text("letter,count\na,3\nA,2\nb,1\nxx,4\nc,oops\n", encoding="utf-8")
        assert load_frequency_csv(path, 1) == {"a": 5.0, "b": 1.0}

    def test_csv_pair(self, tmp_path: Path) -> None:
        chars = tmp_path / "chars.csv"
        chars.write_text("char,frequency\ne,10\nt,5\n", encoding="utf-8")
        pairs = tmp_path / "pairs.csv"
        pairs.write_text("bigram,frequency\nte,2\net,1\n", encoding="utf-8")
        corpus = load_corpus(chars, pairs)
        assert corpus.characters == {"e": 10.0, "t": 5.0}
        assert corpus.bigrams == {"te": 2.0, "et": 1.0}
        assert corpus.language == "chars"

    def test_csv_without_bigrams_raises(self, tmp_path: Path) -> None:
        chars = tmp_path / "chars.csv"
        chars.write_text("char,frequency\ne,10\n", encoding="utf-8")
        with pytest.raises(CorpusError, match="bigram"):
            load_corpus(chars)

    def test_missing_frequency_column(self, tmp_path: Path) -> None:
        path = tmp_path / "letters.csv"
        path.write_text("letter,amount\na,3\n", encoding="utf-8")
        with pytest.raises(CorpusError, match="frequency column"):
            load_frequency_csv(path, 1)


class TestSaveCorpus:
    def test_save_then_load(self, tmp_path: Path, small_corpus: Corpus) -> None:
        path = tmp_path / "saved.json"
        save_corpus(small_corpus, path)
        loaded = load_corpus(path)
        assert loaded.characters == small_corpus.characters
        assert loaded.bigrams == small_corpus.bigrams
        assert next(iter(loaded.characters)) == "e"
