import asyncio
import math

import pytest

from boardflow.budget import StepBudget
from boardflow.errors import EvalError, StepLimitExceeded
from boardflow.schemas import SQUARE
from boardflow.types import EnumObj, NumberObj, SpriteObj, TextObj


def run(compiler, ev, head, limit=10_000):
    flow = compiler().compile_flow(head)
    asyncio.run(ev.run_flow(flow, StepBudget(limit)))


def value_of(ev, element):
    return ev.store[element.id].value


class TestVariables:

    def test_reading_unset_variable_fails(self, board, compiler, evaluator):
        setup = board.text("setup")
        [log] = board.chain(setup, "debug log")
        score = board.variable("score")
        board.arrow(score, log)

        with pytest.raises(EvalError) as exc:
            run(compiler, evaluator(), setup)
        assert exc.value.original_message == "variable 'score' is not set."
        assert exc.value.element == score

    def test_assign_then_read(self, board, compiler, evaluator):
        setup = board.text("setup")
        five, plus = board.chain(setup, "5", "+ 1")
        score, result = board.variable("score"), board.variable("result")
        board.arrow(five, score)
        board.arrow(score, plus)
        board.arrow(plus, result)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, score) == 5
        assert value_of(ev, result) == 6

    def test_same_name_different_squares_are_different_variables(self, board, compiler, evaluator):
        setup = board.text("setup")
        [one] = board.chain(setup, "1")
        a, b = board.variable("x"), board.variable("x")
        board.arrow(one, a)

        ev = evaluator()
        run(compiler, ev, setup)
        assert a.id in ev.store and b.id not in ev.store

    def test_property_initializer_used_when_unset(self, board, compiler, evaluator):
        setup = board.text("setup")
        [plus] = board.chain(setup, "+ 0")
        w, width, out = board.variable("w"), board.prop("width"), board.variable("out")
        board.arrow(width, w)
        board.arrow(w, plus)
        board.arrow(plus, out)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, out) == 400

    def test_assigning_to_file_fails(self, board, compiler, evaluator):
        setup = board.text("setup")
        [one] = board.chain(setup, "1")
        db = board.file("data")
        board.arrow(one, db)

        with pytest.raises(EvalError, match="this is a 'FILE' node and i don't know how to assign to it."):
            run(compiler, evaluator(), setup)

    def test_no_value_for_outputs_warns(self, board, compiler, evaluator, annotations):
        setup = board.text("setup")
        [log] = board.chain(setup, "debug log")
        source, out = board.variable("source"), board.variable("out")
        board.arrow(source, log)
        board.arrow(log, out)

        ev = evaluator()
        ev.store[source.id] = NumberObj(value=1, at=source)
        run(compiler, ev, setup)
        [marker] = annotations.warnings
        assert marker.message == "not outputting anything because this function does not return anything."
        assert marker.element == out
        assert out.id not in ev.store


class TestArithmetic:

    @pytest.mark.parametrize("label,expected", [
        ("3 + 4", 7),
        ("3 * 4", 12),
        ("10 - 4", 6),
        ("9 / 2", 4.5),
        ("7 % 3", 1),
        ("-7 % 3", -1),
        ("7 % -3", 1),
        ("-1 / 0", -math.inf),
        ("1 / 0", math.inf),
    ])
    def test_operators(self, board, compiler, evaluator, label, expected):
        setup = board.text("setup")
        [op] = board.chain(setup, label)
        out = board.variable("out")
        board.arrow(op, out)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, out) == expected

    def test_zero_over_zero(self, board, compiler, evaluator):
        setup = board.text("setup")
        [op] = board.chain(setup, "0 / 0")
        out = board.variable("out")
        board.arrow(op, out)

        ev = evaluator()
        run(compiler, ev, setup)
        assert math.isnan(value_of(ev, out))

    def test_named_operands(self, board, compiler, evaluator):
        setup = board.text("setup")
        ten, two, minus = board.chain(setup, "10", "2", "-")
        named_right, named_left, out = board.variable("right"), board.variable("left"), board.variable("out")
        board.arrow(ten, named_right)
        board.arrow(two, named_left)
        # Wired right operand first; names decide the order.
        board.arrow(named_right, minus)
        board.arrow(named_left, minus)
        board.arrow(minus, out)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, out) == -8

    def test_comparison_gives_boolean(self, board, compiler, evaluator):
        setup = board.text("setup")
        [op] = board.chain(setup, "1 < 2")
        out = board.variable("out")
        board.arrow(op, out)

        ev = evaluator()
        run(compiler, ev, setup)
        result = ev.store[out.id]
        assert isinstance(result, EnumObj)
        assert result.selected == frozenset(["yes"])


class TestLoops:

    def build_counter(self, board, size):
        setup = board.text("setup")
        n_lit, c_lit, t_lit, rng, loop = board.chain(setup, str(size), "0", "0", "range", "loop")
        n, count, total = board.variable("n"), board.variable("count"), board.variable("total")
        items, i = board.variable("items"), board.variable("i")
        board.arrow(n_lit, n)
        board.arrow(c_lit, count)
        board.arrow(t_lit, total)
        board.arrow(n, rng)
        board.arrow(rng, items)
        board.arrow(items, loop)
        board.arrow(loop, i)

        inc, add = board.chain(loop, "+ 1", "+")
        board.arrow(count, inc)
        board.arrow(inc, count)
        board.arrow(total, add)
        board.arrow(i, add)
        board.arrow(add, total)
        return setup, count, total, i

    def test_loop_runs_once_per_item(self, board, compiler, evaluator):
        setup, count, total, i = self.build_counter(board, 3)
        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, count) == 3
        assert value_of(ev, total) == 0 + 1 + 2
        assert value_of(ev, i) == 2

    def test_empty_range_skips_body(self, board, compiler, evaluator):
        setup, count, total, i = self.build_counter(board, 0)
        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, count) == 0
        assert i.id not in ev.store

    def test_loop_without_body_warns(self, board, compiler, evaluator, annotations):
        setup = board.text("setup")
        [loop] = board.chain(setup, "loop")
        run(compiler, evaluator(), setup)
        assert [m.message for m in annotations.warnings] == ["loop has no body."]
        assert annotations.warnings[0].element == loop

    def test_invalid_range(self, board, compiler, evaluator):
        setup = board.text("setup")
        [rng] = board.chain(setup, "range")
        n = board.variable("n")
        board.arrow(n, rng)
        ev = evaluator()
        ev.store[n.id] = NumberObj(value=-1, at=n)
        with pytest.raises(EvalError, match="invalid array length"):
            run(compiler, ev, setup)

    def test_runaway_loop_exhausts_budget(self, board, compiler, evaluator):
        setup = board.text("setup")
        big, rng, loop = board.chain(setup, "100", "range", "loop")
        n, items = board.variable("n"), board.variable("items")
        board.arrow(big, n)
        board.arrow(n, rng)
        board.arrow(rng, items)
        board.arrow(items, loop)
        board.chain(loop, "1")

        with pytest.raises(StepLimitExceeded):
            run(compiler, evaluator(), setup, limit=50)


class TestMatch:

    def build_match(self, board, label="1 < 2", arms=("yes", "no")):
        setup = board.text("setup")
        check, after = board.text(label, y=10, italic=True), board.text("30", y=50)
        board.then(setup, check)
        board.then(setup, after)

        v = board.variable("v")
        board.arrow(after, v)
        bodies = {}
        for k, arm in enumerate(arms):
            head = board.text(arm, y=20 + k)
            board.then(check, head)
            [body] = board.chain(head, str(10 * (k + 1)))
            out = board.variable(f"arm {arm}")
            board.arrow(body, out)
            bodies[arm] = out
        return setup, check, v, bodies

    def test_only_selected_arm_runs(self, board, compiler, evaluator):
        setup, _, v, bodies = self.build_match(board)
        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, bodies["yes"]) == 10
        assert bodies["no"].id not in ev.store
        assert value_of(ev, v) == 30

    def test_arm_detour_then_resume(self, board, compiler, evaluator):
        setup = board.text("setup")
        check, after = board.text("1 < 2", y=10, italic=True), board.text("30", y=50)
        board.then(setup, check)
        board.then(setup, after)
        yes = board.text("yes", y=20)
        board.then(check, yes)
        [ten] = board.chain(yes, "10")
        v = board.variable("v")
        board.arrow(ten, v)
        board.arrow(after, v)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, v) == 30

    def test_unknown_arm_warns(self, board, compiler, evaluator, annotations):
        setup, check, _, bodies = self.build_match(board, arms=("yes", "maybe"))
        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, bodies["yes"]) == 10
        [marker] = annotations.warnings
        assert marker.message == "unknown enum value. valid: 'no', 'yes'"
        assert marker.element == check

    def test_match_on_inputs(self, board, compiler, evaluator):
        setup, _, _, bodies = self.build_match(board, label="inputs", arms=("up", "down"))
        ev = evaluator()
        ev.inputs.update({"up"})
        run(compiler, ev, setup)
        assert value_of(ev, bodies["up"]) == 10
        assert bodies["down"].id not in ev.store


class TestBuiltins:

    def test_sprite_properties(self, board, compiler, evaluator):
        setup = board.text("setup")
        add, fifty, plus = board.chain(setup, "add sprite", "50", "+ 1")
        graphic = board.shape(SQUARE, width=30, height=40)
        player, x, nx = board.variable("player"), board.prop("x"), board.variable("nx")
        board.arrow(graphic, add)
        board.arrow(add, player)
        board.arrow(player, x)
        board.arrow(fifty, x)
        board.arrow(x, plus)
        board.arrow(plus, nx)

        ev = evaluator()
        run(compiler, ev, setup)
        sprite = ev.store[player.id]
        assert isinstance(sprite, SpriteObj)
        assert sprite.handle.x == 50
        assert value_of(ev, nx) == 51
        [obj] = ev.surface.objects.values()
        assert (obj.x, obj.width, obj.height) == (50, 30, 40)

    def test_text_properties(self, board, compiler, evaluator):
        setup = board.text("setup")
        add, hi, plus = board.chain(setup, "add text", '"hi"', "+ 0")
        label, chars, width, out = board.variable("label"), board.prop("text"), board.prop("width"), \
            board.variable("out")
        board.arrow(add, label)
        board.arrow(label, chars)
        board.arrow(label, width)
        board.arrow(hi, chars)
        board.arrow(width, plus)
        board.arrow(plus, out)

        ev = evaluator()
        run(compiler, ev, setup)
        text = ev.store[label.id]
        assert isinstance(text, TextObj)
        assert text.handle.characters == "hi"
        assert value_of(ev, out) == pytest.approx(2 * 20 * 0.6)

    def test_window_property_read(self, board, compiler, evaluator):
        setup = board.text("setup")
        [plus] = board.chain(setup, "+ 0")
        height, out = board.prop("height"), board.variable("out")
        board.arrow(height, plus)
        board.arrow(plus, out)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, out) == 300

    def test_unknown_property_fails(self, board, compiler, evaluator):
        setup = board.text("setup")
        [plus] = board.chain(setup, "+ 0")
        speed = board.prop("speed")
        board.arrow(speed, plus)
        with pytest.raises(EvalError, match="failed to read variable"):
            run(compiler, evaluator(), setup)

    def test_window_property_write_fails(self, board, compiler, evaluator):
        setup = board.text("setup")
        [five] = board.chain(setup, "500")
        board.arrow(five, board.prop("width"))
        with pytest.raises(EvalError, match="failed to set variable"):
            run(compiler, evaluator(), setup)

    def test_colliding(self, board, compiler, evaluator):
        setup = board.text("setup")
        add_a, add_b, hit = board.chain(setup, "add sprite", "add sprite", "colliding")
        a, b, out = board.variable("a"), board.variable("b"), board.variable("hit")
        g = board.shape(SQUARE)
        board.arrow(g, add_a)
        board.arrow(g, add_b)
        board.arrow(add_a, a)
        board.arrow(add_b, b)
        board.arrow(a, hit)
        board.arrow(b, hit)
        board.arrow(hit, out)

        ev = evaluator()
        run(compiler, ev, setup)
        assert ev.store[out.id].selected == frozenset(["yes"])

        check = board.text("check")
        [again] = board.chain(check, "colliding")
        board.arrow(a, again)
        board.arrow(b, again)
        board.arrow(again, out)
        ev.store[b.id].handle.move(x=500)
        run(compiler, ev, check)
        assert ev.store[out.id].selected == frozenset(["no"])

    def test_colliding_with_cleared_sprite(self, board, compiler, evaluator):
        setup = board.text("setup")
        add_a, add_b = board.chain(setup, "add sprite", "add sprite")
        a, b = board.variable("a"), board.variable("b")
        g = board.shape(SQUARE)
        board.arrow(g, add_a)
        board.arrow(g, add_b)
        board.arrow(add_a, a)
        board.arrow(add_b, b)
        check = board.text("check")
        [hit] = board.chain(check, "colliding")
        board.arrow(a, hit)
        board.arrow(b, hit)
        board.arrow(hit, board.variable("hit"))

        ev = evaluator()
        run(compiler, ev, setup)
        ev.surface.clear()
        with pytest.raises(EvalError, match="failed to read variable") as info:
            run(compiler, ev, check)
        assert info.value.element == hit

    def test_call_flow(self, board, compiler, evaluator):
        setup = board.text("setup")
        [call] = board.chain(setup, "call")
        helper = board.text("helper")
        [five] = board.chain(helper, "5")
        v = board.variable("v")
        board.arrow(helper, call)
        board.arrow(five, v)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, v) == 5

    def test_index_and_length(self, board, compiler, evaluator):
        setup = board.text("setup")
        three, rng, one, idx, length = board.chain(setup, "3", "range", "1", "index", "length")
        n, items, k = board.variable("n"), board.variable("items"), board.variable("k")
        item, size = board.variable("item"), board.variable("size")
        board.arrow(three, n)
        board.arrow(n, rng)
        board.arrow(rng, items)
        board.arrow(one, k)
        board.arrow(items, idx)
        board.arrow(k, idx)
        board.arrow(idx, item)
        board.arrow(items, length)
        board.arrow(length, size)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, item) == 1
        assert value_of(ev, size) == 3

    def test_index_out_of_bounds(self, board, compiler, evaluator):
        setup = board.text("setup")
        three, rng, five, idx = board.chain(setup, "3", "range", "5", "index")
        n, items, k = board.variable("n"), board.variable("items"), board.variable("k")
        board.arrow(three, n)
        board.arrow(n, rng)
        board.arrow(rng, items)
        board.arrow(five, k)
        board.arrow(items, idx)
        board.arrow(k, idx)

        with pytest.raises(EvalError) as exc:
            run(compiler, evaluator(), setup)
        assert exc.value.original_message == "array index out of bounds: 5 >= length 3."
        assert exc.value.element == idx

    def test_to_string(self, board, compiler, evaluator):
        setup = board.text("setup")
        seven, conv = board.chain(setup, "7", "to string")
        n, s = board.variable("n"), board.variable("s")
        board.arrow(seven, n)
        board.arrow(n, conv)
        board.arrow(conv, s)

        ev = evaluator()
        run(compiler, ev, setup)
        assert value_of(ev, s) == "7"

    def test_parse_obj(self, board, compiler, evaluator):
        setup = board.text("setup")
        verts, faces = board.chain(setup, "parse obj vertices", "parse obj faces")
        db = board.file("v 1 2 3\nv 4 5.5 6\nvn 0 0 1\nf 1/1 2/2 3/3")
        vs, fs = board.variable("vs"), board.variable("fs")
        board.arrow(db, verts)
        board.arrow(db, faces)
        board.arrow(verts, vs)
        board.arrow(faces, fs)

        ev = evaluator()
        run(compiler, ev, setup)
        assert [[n.value for n in row.items] for row in ev.store[vs.id].items] == [[1, 2, 3], [4, 5.5, 6]]
        assert [[n.value for n in row.items] for row in ev.store[fs.id].items] == [[0, 1, 2]]

    def test_unknown_builtin(self, board, compiler, evaluator):
        setup = board.text("setup")
        [bad] = board.chain(setup, "launch rockets")
        with pytest.raises(EvalError) as exc:
            run(compiler, evaluator(), setup)
        assert exc.value.original_message == "unknown builtin function call."
        assert exc.value.element == bad

    def test_done_stops_before_next_instruction(self, board, compiler, evaluator):
        setup = board.text("setup")
        [one] = board.chain(setup, "1")
        v = board.variable("v")
        board.arrow(one, v)

        ev = evaluator()
        ev.done = True
        run(compiler, ev, setup)
        assert v.id not in ev.store
