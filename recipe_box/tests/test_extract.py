from __future__ import annotations

from recipe_box.soustack_ingest import extract, lines, segment
from recipe_box.soustack_ingest.prep import PrepExtractionMode
from recipe_box.soustack_ingest.segment import Chunk


def whole_chunk(text: str, title_guess: str | None = None) -> tuple[Chunk, list[lines.Line]]:
    normalized = lines.normalize(text)
    chunk = Chunk(
        start_line=1,
        end_line=len(normalized.lines),
        title_guess=title_guess,
        confidence=0.5,
        evidence="test",
    )
    return chunk, normalized.lines


def extract_text(text: str, title_guess: str | None = None, **kwargs: object) -> extract.IntermediateRecipe:
    chunk, all_lines = whole_chunk(text, title_guess)
    return extract.extract(chunk, all_lines, **kwargs)  # type: ignore[arg-type]


def test_headerless_recipe_is_split_by_density() -> None:
    text = "SUMMER SALAD\n\n2 cups mixed greens\n1/2 cup cherry tomatoes\nPinch of salt\n\nToss together and serve."
    normalized = lines.normalize(text)
    chunk = segment.segment(normalized.lines).chunks[0]
    recipe = extract.extract(chunk, normalized.lines)
    assert recipe.title == "SUMMER SALAD"
    assert recipe.ingredients == ["2 cups mixed greens", "1/2 cup cherry tomatoes", "Pinch of salt"]
    assert recipe.instructions == ["Toss together and serve."]
    assert recipe.ingredients_inferred is False
    assert recipe.source.start_line == 1
    assert recipe.source.end_line == 7


def test_explicit_headers_route_every_line() -> None:
    text = "\n".join(
        [
            "BANANA BREAD",
            "",
            "Ingredients:",
            "- 3 ripe bananas",
            "* 2 cups flour",
            "",
            "Instructions",
            "1. Mash the bananas.",
            "Step 2: Fold in the flour.",
            "3) Bake for an hour.",
        ]
    )
    recipe = extract_text(text, "BANANA BREAD")
    assert recipe.ingredients == ["3 ripe bananas", "2 cups flour"]
    assert recipe.instructions == ["Mash the bananas.", "Fold in the flour.", "Bake for an hour."]
    assert recipe.notes == []


def test_prep_header_without_ingredients_header() -> None:
    text = "\n".join(
        [
            "QUICK TOAST",
            "",
            "2 slices bread",
            "1 tbsp butter",
            "",
            "Preparation:",
            "Toast the bread until golden.",
            "Spread with butter.",
        ]
    )
    recipe = extract_text(text, "QUICK TOAST")
    assert recipe.ingredients == []
    assert recipe.instructions[0].startswith("Toast")
    assert recipe.instructions == ["Toast the bread until golden.", "Spread with butter."]
    assert recipe.prep_section == ["Toast the bread until golden.", "Spread with butter."]
    assert recipe.notes == ["2 slices bread", "1 tbsp butter"]
    assert recipe.ingredients_inferred is False


def test_quick_toast_without_blank_lines() -> None:
    text = "QUICK TOAST\n2 slices bread\n1 tbsp butter\nPreparation:\nToast the bread until golden.\nSpread with butter."
    normalized = lines.normalize(text)
    chunks = segment.segment(normalized.lines).chunks
    assert len(chunks) == 1
    recipe = extract.extract(chunks[0], normalized.lines)
    assert recipe.title == "QUICK TOAST"
    assert recipe.ingredients == []
    assert "Toast" in recipe.instructions[0]


def test_instruction_header_keeps_ingredient_preamble() -> None:
    text = "COZY SOUP\n\nA hearty bowl.\n- 1 tbsp olive oil\n- 1 cup broth\n\nDirections\nSimmer for 10 minutes."
    recipe = extract_text(text, "COZY SOUP")
    assert recipe.ingredients == ["1 tbsp olive oil", "1 cup broth"]
    assert recipe.instructions == ["Simmer for 10 minutes."]
    assert recipe.notes == ["A hearty bowl."]


def test_preamble_before_ingredients_header_becomes_notes() -> None:
    text = "GRANOLA\n\nA crunchy breakfast staple.\nIngredients\n2 cups oats\nMethod\nBake at low heat."
    recipe = extract_text(text, "GRANOLA")
    assert recipe.notes == ["A crunchy breakfast staple."]
    assert recipe.ingredients == ["2 cups oats"]
    assert recipe.instructions == ["Bake at low heat."]


def test_density_walk_opening_with_ingredients_switches_after_two() -> None:
    sections = extract.split_by_density(["2 eggs", "salt", "pepper", "Whisk everything together.", "Serve."])
    assert sections.ingredients == ["2 eggs", "salt", "pepper"]
    assert sections.instructions == ["Whisk everything together.", "Serve."]
    assert sections.explicit is False


def test_density_walk_unknown_opening_moves_into_ingredients() -> None:
    # five-line sample has more instruction-like lines, so the walk starts undecided
    sections = extract.split_by_density(["Optional", "salt", "2 cups flour", "Stir it in well.", "Taste it again."])
    assert sections.ingredients == ["salt", "2 cups flour"]
    assert sections.instructions == ["Stir it in well.", "Taste it again."]
    assert sections.notes == []


def test_density_walk_reruns_strictly_when_no_ingredients_found() -> None:
    texts = ["Croutons", "2 cups torn bread", "Toss with the dressing.", "Serve immediately."]
    sections = extract.split_by_density(texts)
    assert sections.ingredients == ["Croutons", "2 cups torn bread"]
    assert sections.instructions == ["Toss with the dressing.", "Serve immediately."]


def test_density_walk_without_ingredients_stays_in_instructions() -> None:
    sections = extract.split_by_density(["Heat the oven.", "Roast the squash.", "Serve warm."])
    assert sections.ingredients == []
    assert sections.instructions == ["Heat the oven.", "Roast the squash.", "Serve warm."]


def test_ingredients_inferred_from_imperative_steps() -> None:
    text = "PANCAKES\n\nAdd flour and sugar to a bowl.\nAdd eggs and milk."
    recipe = extract_text(text, "PANCAKES")
    assert recipe.ingredients == ["flour", "sugar", "eggs", "milk"]
    assert recipe.ingredients_inferred is True
    assert recipe.instructions == ["Add flour and sugar to a bowl.", "Add eggs and milk."]


def test_infer_ingredients_needs_two_imperative_steps() -> None:
    assert extract.infer_ingredients(["Add flour and sugar."]) == []
    assert extract.infer_ingredients(["Add flour and sugar.", "It rests overnight."]) == []


def test_infer_ingredients_skips_tools_and_quantities() -> None:
    inferred = extract.infer_ingredients(
        ["Heat the oil in a skillet.", "Add 2 cups rice and stir for 3 minutes.", "Stir the rice."]
    )
    assert inferred == ["oil", "rice"]


def test_inline_author_is_captured() -> None:
    text = "LEMON TART\nBy Ada Lovelace\nIngredients\n3 lemons\nInstructions\nBake the tart."
    recipe = extract_text(text, "LEMON TART")
    assert recipe.source.author == "Ada Lovelace"
    assert recipe.ingredients == ["3 lemons"]
    assert "By Ada Lovelace" not in recipe.notes


def test_byline_marker_takes_next_line() -> None:
    text = "LEMON TART\nBy:\n\nAda Lovelace\nIngredients\n3 lemons\nInstructions\nBake the tart."
    recipe = extract_text(text, "LEMON TART")
    assert recipe.source.author == "Ada Lovelace"
    assert recipe.notes == []


def test_byline_marker_keeps_a_line_that_is_not_a_name() -> None:
    scan = extract.extract_author(lines.normalize("By:\nPreheat the oven to 350 degrees.").lines)
    assert scan.author is None
    assert [line.text for line in scan.lines] == ["Preheat the oven to 350 degrees."]


def test_title_defaults_to_first_non_blank_line() -> None:
    recipe = extract_text("\nOVERNIGHT OATS\n1 cup oats\nSoak overnight.")
    assert recipe.title == "OVERNIGHT OATS"


def test_blank_chunk_is_untitled() -> None:
    recipe = extract_text("\n\n")
    assert recipe.title == extract.UNTITLED_RECIPE
    assert recipe.ingredients == []
    assert recipe.instructions == []


def test_repair_tail_moves_trailing_instruction() -> None:
    sections = extract.Sections(ingredients=["2 eggs", "1 cup milk", "Serve warm."])
    extract.repair_tail(sections)
    assert sections.ingredients == ["2 eggs", "1 cup milk"]
    assert sections.instructions == ["Serve warm."]


def test_repair_tail_single_line_becomes_instruction() -> None:
    sections = extract.Sections(ingredients=["Toast"])
    extract.repair_tail(sections)
    assert sections.instructions == ["Toast"]


def test_repair_tail_leaves_complete_sections_alone() -> None:
    sections = extract.Sections(ingredients=["2 eggs", "Serve warm."], instructions=["Whisk."])
    extract.repair_tail(sections)
    assert sections.ingredients == ["2 eggs", "Serve warm."]
    assert sections.instructions == ["Whisk."]


def test_aggressive_prep_mode_collects_descriptors() -> None:
    text = "CARROT SLAW\n\nIngredients\n2 cups carrots, finely chopped\n1 apple\nMethod\nToss together."
    recipe = extract_text(text, "CARROT SLAW", prep_mode=PrepExtractionMode.AGGRESSIVE)
    assert recipe.ingredient_prep is not None
    assert [entry.to_dict() for entry in recipe.ingredient_prep] == [
        {"index": 0, "raw": "2 cups carrots, finely chopped", "base": "2 cups carrots", "prep": ["finely chopped"]}
    ]
    # the ingredient list itself is untouched
    assert recipe.ingredients[0] == "2 cups carrots, finely chopped"


def test_conservative_prep_mode_ignores_modifier_phrases() -> None:
    text = "CARROT SLAW\n\nIngredients\n2 cups carrots, finely chopped\nMethod\nToss together."
    recipe = extract_text(text, "CARROT SLAW")
    assert recipe.ingredient_prep is None


def test_clean_helpers() -> None:
    assert extract.clean_ingredient("• 1 cup sugar") == "1 cup sugar"
    assert extract.clean_instruction("Step 3: Bake.") == "Bake."
    assert extract.clean_instruction("2) Cool.") == "Cool."
    assert extract.header_mode("Mise en place:") is extract.Mode.PREP
    assert extract.header_mode("Ingredients") is extract.Mode.INGREDIENTS
    assert extract.header_mode("Directions:") is extract.Mode.INSTRUCTIONS
    assert extract.header_mode("Salt to taste") is None
