from wordgame.logic.dictionary import AlphabeticDictionary, WordListDictionary


class TestAlphabeticDictionary:
    def test_accepts_letters_only(self):
        dictionary = AlphabeticDictionary()
        assert dictionary.is_valid_word("test")
        assert dictionary.is_valid_word("TeSt")

    def test_rejects_digits_spaces_and_accents(self):
        dictionary = AlphabeticDictionary()
        for word in ("te5t", "two words", "", "café"):
            assert not dictionary.is_valid_word(word)


class TestWordListDictionary:
    def test_membership_is_case_insensitive(self):
        dictionary = WordListDictionary({"Apple", "banana "})
        assert dictionary.is_valid_word("apple")
        assert dictionary.is_valid_word("BANANA")
        assert not dictionary.is_valid_word("cherry")

    def test_from_file_skips_comments_and_blanks(self, tmp_path):
        path = tmp_path / "words.txt"
        path.write_text("# english words\napple\n\nbanana\n", encoding="utf-8")
        dictionary = WordListDictionary.from_file(path)
        assert len(dictionary) == 2
        assert dictionary.is_valid_word("banana")
        assert not dictionary.is_valid_word("# english words")
