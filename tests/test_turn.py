"""Golden scenario tests for the turn orchestrator."""

import pytest

from giftly.domain.bundles import SuggestedBundle
from giftly.domain.questions import question_for_field
from giftly.domain.state import ChatState
from giftly.domain.turn import (
    DEFAULT_BUNDLE_WHY,
    UNSURE_ACK,
    HistoryEntry,
    TurnInput,
    apply_bare_numeric,
    build_fallback_message,
    build_sales_summary,
    handle_turn,
    is_unsure_phrase,
    resolve_next_field,
)

from .helpers import FakeComposer, FakeLeadStore, run_turns

SIMPLE_BULK = (
    "We need 40 gifts, budget is $45 each, bulk to SF office, all at once, "
    "no branding, delivery in 4 weeks."
)
INDIVIDUAL_US = (
    "120 gifts, $85 each, ship to home addresses across the US, we'll provide "
    "the addresses, include a note card, mid-December."
)
HIGH_TOUCH = (
    "250 embroidered hoodies, ship to individual addresses in US and Canada, you "
    "handle collection and distribution, need them in 2 weeks."
)
EXPLORE = "We'd like to explore a small gifting project."

STREAMLINED_MESSAGE = (
    "This looks eligible for a streamlined flow. Here are a few ready-to-ship "
    "options. If you'd like, share your email and we'll follow up."
)


class TestUnsurePhrase:
    @pytest.mark.parametrize(
        "text",
        [
            "I don't know",
            "i do not know.",
            "I’m not sure",
            "Not sure.",
            "no idea!",
            "idk",
            "skip",
            "Skip this",
            "maybe later",
            "pass",
            "dunno",
            "rather not say",
            "I don't have a clue",
        ],
    )
    def test_unsure(self, text):
        assert is_unsure_phrase(text)

    @pytest.mark.parametrize(
        "text",
        ["", "   ", "30", "passport holders", "idk maybe 50", "We are not sure", "bulk please"],
    )
    def test_not_unsure(self, text):
        assert not is_unsure_phrase(text)


class TestBareNumeric:
    def test_fills_quantity_first(self):
        assert apply_bare_numeric("30", ChatState()) == ChatState(quantity=30)

    def test_then_budget(self):
        state = apply_bare_numeric("$45", ChatState(quantity=30))
        assert state == ChatState(quantity=30, budget_per_unit_usd=45.0)

    def test_quantity_rounds_half_up(self):
        assert apply_bare_numeric("12.5", ChatState()).quantity == 13

    @pytest.mark.parametrize("text", ["between 30 and 50", "30 to 50", "30 - 50", "30-50"])
    def test_ranges_use_midpoint(self, text):
        assert apply_bare_numeric(text, ChatState()).quantity == 40

    def test_budget_range(self):
        state = apply_bare_numeric("between 20 and 40", ChatState(quantity=40))
        assert state.budget_per_unit_usd == 30.0

    def test_falls_through_when_both_known(self):
        assert apply_bare_numeric("30", ChatState(quantity=30, budget_per_unit_usd=20.0)) is None

    def test_falls_through_when_only_budget_known(self):
        assert apply_bare_numeric("30", ChatState(budget_per_unit_usd=20.0)) is None

    @pytest.mark.parametrize("text", ["0", "0 to 10", "thirty", "30 gifts"])
    def test_not_bare_positive(self, text):
        assert apply_bare_numeric(text, ChatState()) is None

    @pytest.mark.parametrize("text", ["9" * 400, "1" * 5000, "between 10 and " + "9" * 400])
    def test_oversized_numbers_ignored(self, text):
        assert apply_bare_numeric(text, ChatState()) is None
        assert apply_bare_numeric(text, ChatState(quantity=40)) is None


class TestOversizedNumbers:
    """Absurdly long digit runs are ignored instead of aborting the turn."""

    def test_bare_reply_leaves_quantity_missing(self):
        result = handle_turn(TurnInput(message="9" * 400))

        assert result.state.quantity is None
        assert "quantity" in result.missing

    def test_budget_reply_leaves_budget_missing(self):
        result = handle_turn(TurnInput(message="$" + "9" * 400 + " each", state=ChatState(quantity=40)))

        assert result.state.budget_per_unit_usd is None
        assert result.state.quantity == 40
        assert "budgetPerUnitUsd" in result.missing

    def test_long_digit_run_in_free_text(self):
        result = handle_turn(TurnInput(message="1" * 5000 + " gifts, delivery in " + "2" * 5000 + " weeks"))
        assert result.state.quantity is None


class TestResolveNextField:
    def test_first_non_contact_field(self):
        assert resolve_next_field(["budgetPerUnitUsd", "email"], "assisted", ChatState()) == "budgetPerUnitUsd"

    def test_contact_asked_when_not_streamlined(self):
        assert resolve_next_field(["email"], "assisted", ChatState()) == "email"

    def test_contact_not_asked_when_streamlined(self):
        assert resolve_next_field(["email"], "streamlined", ChatState()) is None

    def test_nothing_missing(self):
        assert resolve_next_field([], "high_touch", ChatState(email="a@b.co")) is None


class TestFallbackCopy:
    def test_summary_bullets(self):
        state = ChatState(
            quantity=40,
            budget_per_unit_usd=45.0,
            deadline_text="in 4 weeks",
            shipping_type="bulk",
            branding="none",
            international=False,
        )
        assert build_sales_summary(state) == (
            "40 recipients. $45 per gift. Deadline: in 4 weeks. Shipping: bulk. "
            "Branding: none. International: false"
        )

    def test_summary_keeps_raw_amount(self):
        assert build_sales_summary(ChatState(budget_per_unit_usd=22.5)) == "$22.5 per gift"

    def test_empty_summary(self):
        assert build_sales_summary(ChatState()) == "Summary of your request."

    def test_message_prefers_question(self):
        assert build_fallback_message(ChatState(), "assisted", "Q?", []) == "Q?"

    def test_message_streamlined_with_bundles(self):
        bundles = [SuggestedBundle(name="Snack Box", unit_price=18, lead_time_days=5)]
        assert build_fallback_message(ChatState(), "streamlined", None, bundles) == STREAMLINED_MESSAGE

    def test_message_asks_for_contact(self):
        message = build_fallback_message(ChatState(), "assisted", None, [])
        assert message == "Thanks — what's the best email or phone to follow up with a tailored proposal?"

    def test_message_closing(self):
        message = build_fallback_message(ChatState(email="a@b.co"), "assisted", None, [])
        assert message == "Thanks — we've got what we need. We'll follow up shortly."


class TestScenarios:
    """Multi-turn conversations replayed without a composer."""

    def test_a_streamlined_with_bundles(self):
        (result,) = run_turns([SIMPLE_BULK])

        assert result.mode == "streamlined"
        assert result.complexity_score == 1
        assert result.missing == ["email"]
        assert [b.name for b in result.bundle_suggestions] == [
            "Coffee Kit",
            "Snack Box",
            "Wellness / Tea Kit",
        ]
        assert result.assistant_message == STREAMLINED_MESSAGE
        assert result.lead_captured is None

    def test_b_missing_budget_then_bundles(self):
        first, second = run_turns(
            [
                "We need 60 holiday gifts for employees, bulk to NYC office, all at once, "
                "no logo, mid-December.",
                "Around $70 each.",
            ]
        )

        assert first.missing == ["budgetPerUnitUsd", "email"]
        assert first.assistant_message == question_for_field("budgetPerUnitUsd")
        assert first.bundle_suggestions is None

        assert second.state.budget_per_unit_usd == 70.0
        assert second.mode == "streamlined"
        assert len(second.bundle_suggestions) == 3

    def test_c_individual_is_assisted_and_asks_contact(self):
        (result,) = run_turns([INDIVIDUAL_US])

        assert result.mode == "assisted"
        assert result.complexity_score == 3
        assert result.missing == ["email"]
        assert result.assistant_message == question_for_field("email")
        assert result.bundle_suggestions is None

    def test_d_high_touch_clamps(self):
        first, second = run_turns([HIGH_TOUCH, "email is zezette@test.com"])

        assert first.complexity_score == 5
        assert first.mode == "high_touch"
        assert second.state.email == "zezette@test.com"
        assert second.missing == ["budgetPerUnitUsd"]
        assert second.lead_captured is None

    def test_e_total_budget_is_not_per_gift(self):
        (result,) = run_turns(["Total budget is $5000 for 100 gifts."])

        assert result.state.quantity == 100
        assert result.state.budget_per_unit_usd is None
        assert result.missing[0] == "budgetPerUnitUsd"

    def test_f_bare_number_fills_quantity(self):
        results = run_turns([EXPLORE, "30"])

        assert results[0].missing[0] == "quantity"
        assert results[1].state.quantity == 30

    def test_g_bare_number_fills_budget(self):
        results = run_turns([EXPLORE, "30", "30"])

        assert results[-1].state.quantity == 30
        assert results[-1].state.budget_per_unit_usd == 30.0

    def test_h_bare_range_for_quantity(self):
        results = run_turns([EXPLORE, "between 30 and 50"])
        assert results[-1].state.quantity == 40

    def test_i_bare_range_for_budget(self):
        results = run_turns([EXPLORE, "between 30 and 50", "between 20 and 40"])

        assert results[-1].state.quantity == 40
        assert results[-1].state.budget_per_unit_usd == 30.0

    def test_j_ranges_in_context(self):
        (result,) = run_turns(
            ["We need between 30 and 50 recipients, budget between 25 and 35 each, bulk, no branding."]
        )

        assert result.state.quantity == 40
        assert result.state.budget_per_unit_usd == 30.0

    def test_k_unsure_branding_defaults_to_none(self):
        first, second = run_turns(
            ["40 gifts, $45 each, bulk shipping, mid-December delivery.", "I don't know"]
        )

        assert first.missing[0] == "branding"
        assert second.state.branding == "none"
        assert second.missing == ["distributionTiming", "email"]
        assert second.assistant_message == UNSURE_ACK + question_for_field("distributionTiming")

    def test_l_unsure_quantity_has_no_default(self):
        results = run_turns([EXPLORE, "I'm not sure"])

        assert results[-1].state.quantity is None
        assert results[-1].assistant_message == UNSURE_ACK + question_for_field("quantity")

    def test_m_unsure_international_defaults_to_false(self):
        first, second = run_turns(
            [
                "80 gifts, $40 each, ship to individual addresses, we provide the addresses, "
                "no branding, mid-January.",
                "Skip",
            ]
        )

        assert first.missing == ["international", "email"]
        assert second.state.international is False
        assert second.missing == ["email"]
        assert second.assistant_message == UNSURE_ACK + question_for_field("email")

    def test_n_bulk_distribution_answer(self):
        results = run_turns(
            ["50 gifts, $40 each, bulk to Chicago, no branding, 3 weeks.", "All at once"]
        )

        assert results[-1].state.distribution_timing == "all_at_once"
        assert "email" in results[-1].missing

    def test_o_individual_address_answer(self):
        results = run_turns(
            [
                "75 gifts, $55 each, ship to home addresses, no branding, mid-March.",
                "We'll provide the addresses",
            ]
        )

        assert results[-1].state.address_handling == "provided"
        assert results[-1].missing == ["international", "email"]

    def test_p_uncertain_branding_routes_to_assisted(self):
        first, second = run_turns(["30 swag, $25 each, bulk, no logo, flexible.", "Not sure"])

        assert first.state.quantity == 30
        assert first.state.branding is None
        assert first.state.branding_needs_qualification is True
        assert first.mode == "assisted"
        assert second.assistant_message.startswith(UNSURE_ACK)

    def test_unsure_turn_keeps_state(self):
        prior = ChatState(quantity=40, budget_per_unit_usd=45.0)
        result = handle_turn(TurnInput(message="no idea", state=prior))

        assert result.state.quantity == 40
        assert result.state.budget_per_unit_usd == 45.0

    def test_input_state_not_mutated(self):
        prior = ChatState()
        handle_turn(TurnInput(message=SIMPLE_BULK, state=prior))
        assert prior == ChatState()


class TestComposer:
    def test_valid_reply_is_used(self):
        composer = FakeComposer({"assistantMessage": "Lovely, let's do this.", "salesSummary": "40 gifts."})
        (result,) = run_turns([SIMPLE_BULK], composer=composer)

        assert result.assistant_message == "Lovely, let's do this."
        assert result.sales_summary == "40 gifts."

    def test_context_carries_turn_facts(self):
        composer = FakeComposer({"assistantMessage": "ok"})
        run_turns([SIMPLE_BULK], composer=composer)

        (context,) = composer.contexts
        assert context.message == SIMPLE_BULK
        assert context.state.quantity == 40
        assert context.mode == "streamlined"
        assert context.next_field is None
        assert [b.name for b in context.bundles] == ["Coffee Kit", "Snack Box", "Wellness / Tea Kit"]

    @pytest.mark.parametrize(
        "reply",
        [
            None,
            {},
            {"assistantMessage": ""},
            {"assistantMessage": "   "},
            {"assistantMessage": 42},
            ["not", "an", "object"],
        ],
    )
    def test_invalid_reply_falls_back(self, reply):
        (result,) = run_turns([SIMPLE_BULK], composer=FakeComposer(reply))

        assert result.assistant_message == STREAMLINED_MESSAGE
        assert result.sales_summary.startswith("40 recipients")

    def test_raising_composer_falls_back(self):
        composer = FakeComposer(exc=RuntimeError("boom"))
        (result,) = run_turns([SIMPLE_BULK], composer=composer)

        assert result.assistant_message == STREAMLINED_MESSAGE

    def test_non_string_summary_is_dropped(self):
        composer = FakeComposer({"assistantMessage": "ok", "salesSummary": ["x"]})
        (result,) = run_turns([SIMPLE_BULK], composer=composer)

        assert result.sales_summary is None
        assert "salesSummary" not in result.to_dict()

    def test_bundle_why_only_for_exact_matches(self):
        composer = FakeComposer(
            {
                "assistantMessage": "Here you go.",
                "bundleSuggestions": [
                    {"name": "Coffee Kit", "unitPrice": 28, "leadTimeDays": 5, "why": "Crowd favourite"},
                    {"name": "Snack Box", "unitPrice": 10, "leadTimeDays": 5, "why": "Cheap!"},
                    {"name": "Mystery Box", "unitPrice": 1, "leadTimeDays": 1, "why": "Invented"},
                    "garbage",
                ],
            }
        )
        (result,) = run_turns([SIMPLE_BULK], composer=composer)

        assert [(b.name, b.unit_price, b.why) for b in result.bundle_suggestions] == [
            ("Coffee Kit", 28, "Crowd favourite"),
            ("Snack Box", 18, "Fast turnaround"),
            ("Wellness / Tea Kit", 24, "Fast turnaround"),
        ]

    def test_default_why(self):
        state = ChatState(
            quantity=1000,
            budget_per_unit_usd=100.0,
            deadline_text="in 6 weeks",
            shipping_type="bulk",
            branding="none",
            distribution_timing="all_at_once",
        )
        result = handle_turn(TurnInput(message="sounds good", state=state))

        assert [(b.name, b.why) for b in result.bundle_suggestions] == [("Notebook + Pen", DEFAULT_BUNDLE_WHY)]

    def test_unsure_ack_overrides_composer(self):
        composer = FakeComposer({"assistantMessage": "Something else entirely."})
        results = run_turns([EXPLORE, "not sure"], composer=composer)

        assert results[-1].assistant_message == UNSURE_ACK + question_for_field("quantity")


class TestLeadCapture:
    def test_lead_captured_when_complete(self):
        store = FakeLeadStore()
        (result,) = run_turns([SIMPLE_BULK + " Email jane@acme.com"], lead_store=store)

        assert result.missing == []
        assert result.lead_captured is True
        assert result.lead_id == store.leads[0].id
        assert result.bundle_suggestions
        lead = store.leads[0]
        assert lead.state["email"] == "jane@acme.com"
        assert lead.mode == "streamlined"
        assert lead.complexity_score == 1

    def test_lead_carries_history(self):
        store = FakeLeadStore()
        results = run_turns([INDIVIDUAL_US, "email me at jane@acme.com"], lead_store=store)

        assert results[0].lead_captured is None
        assert results[1].lead_captured is True
        assert results[1].assistant_message == "Thanks — we've got what we need. We'll follow up shortly."
        (lead,) = store.leads
        assert lead.reasons == ["Individual shipping"]
        assert [h["role"] for h in lead.history] == ["user", "assistant"]

    def test_no_lead_while_fields_missing(self):
        store = FakeLeadStore()
        run_turns([HIGH_TOUCH, "email is zezette@test.com"], lead_store=store)
        assert store.leads == []

    def test_no_store_no_lead(self):
        (result,) = run_turns([SIMPLE_BULK + " Email jane@acme.com"])
        assert result.lead_captured is None
        assert result.lead_id is None

    def test_store_failure_is_swallowed(self):
        (result,) = run_turns([SIMPLE_BULK + " Email jane@acme.com"], lead_store=FakeLeadStore(fail=True))

        body = result.to_dict()
        assert "leadCaptured" not in body
        assert "leadId" not in body
        assert body["assistantMessage"]

    def test_each_qualifying_turn_appends(self):
        store = FakeLeadStore()
        run_turns([SIMPLE_BULK + " Email jane@acme.com", "thanks!"], lead_store=store)
        assert len(store.leads) == 2


class TestTurnResultWire:
    def test_to_dict(self):
        result = handle_turn(
            TurnInput(
                message=SIMPLE_BULK,
                history=[HistoryEntry(role="assistant", content="Hi! How can we help?")],
            )
        )
        body = result.to_dict()

        assert body["mode"] == "streamlined"
        assert body["complexityScore"] == 1
        assert body["missing"] == ["email"]
        assert body["state"]["budgetPerUnitUsd"] == 45.0
        assert body["bundleSuggestions"][0] == {
            "name": "Coffee Kit",
            "unitPrice": 28,
            "leadTimeDays": 5,
            "why": "Fast turnaround",
        }
        assert "leadCaptured" not in body
