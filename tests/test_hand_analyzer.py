import pytest

from constants import (FAN_ALL_ONE_SUIT, FAN_ALL_TRIPLETS, FAN_BASELINE,
                       FAN_MIXED_ONE_SUIT, FAN_SELF_DRAWN, MELD_CONCEALED_QUAD,
                       MELD_QUAD, MELD_SEQUENCE, MELD_TRIPLET, QUAD, SEQUENCE,
                       TRIPLET, WIN)
from hand_analyzer import (can_concealed_quad, can_quad, can_triplet,
                           claim_options, decompositions, find_sequence_claims,
                           is_winning_hand, make_meld, score_win)


class TestWinningHand:

    def test_documented_mixed_hand(self):
        hand = ['1w', '1w', '1w', '2w', '3w', '4w', '5t', '6t', '7t', '9b', '9b', 'dong', 'dong', 'dong']
        assert is_winning_hand(hand)
        groups = next(decompositions(hand))
        assert ('triplet', ('1w', '1w', '1w')) in groups
        assert ('sequence', ('2w', '3w', '4w')) in groups
        assert ('sequence', ('5t', '6t', '7t')) in groups
        assert ('triplet', ('dong', 'dong', 'dong')) in groups
        assert ('pair', ('9b', '9b')) in groups

    def test_four_triplets_and_a_pair(self):
        assert is_winning_hand(['2w'] * 3 + ['5b'] * 3 + ['8t'] * 3 + ['zhong'] * 3 + ['bai'] * 2)

    def test_four_runs_and_a_pair(self):
        assert is_winning_hand(['1w', '2w', '3w', '4b', '5b', '6b', '7t', '8t', '9t',
                                '3t', '4t', '5t', 'nan', 'nan'])

    def test_input_order_does_not_matter(self):
        hand = ['dong', '9b', '3w', 'dong', '1w', '7t', '1w', '9b', '6t', '2w', 'dong', '4w', '1w', '5t']
        assert is_winning_hand(hand)

    def test_no_pair(self):
        assert not is_winning_hand(['1w', '2w', '3w', '4w', '5w', '6w', '7w', '8w', '9w',
                                    '1b', '2b', '3b', '5t', '7t'])

    def test_honor_tiles_never_run(self):
        assert not is_winning_hand(['dong', 'nan', 'xi', 'zhong', 'fa', 'bai', '1w', '2w', '3w',
                                    '4b', '5b', '6b', '9t', '9t'])

    def test_wrong_tile_count(self):
        assert not is_winning_hand(['1w', '1w', '1w', '2w', '2w'])
        assert not is_winning_hand(['1w', '2w', '3w', '4b', '5b', '6b', '7t', '8t', '9t', 'nan', 'nan'])

    def test_needs_pair_before_run_from_lowest_tile(self):
        # Taking 1w 1w 1w as a triplet strands 2w 3w; only pair 1w + run 1w 2w 3w works
        assert is_winning_hand(['1w', '1w', '1w', '2w', '3w', '4b', '5b', '6b', '7t', '8t', '9t',
                                'zhong', 'zhong', 'zhong'])

    def test_needs_two_identical_runs(self):
        assert is_winning_hand(['1w', '1w', '2w', '2w', '3w', '3w', '5b', '5b', '7t', '8t', '9t',
                                'fa', 'fa', 'fa'])

    def test_needs_run_over_triplet(self):
        # 3b 3b 3b 4b 5b: triplet of 3b leaves 4b 5b, run 3b 4b 5b leaves the pair 3b 3b
        assert is_winning_hand(['3b', '3b', '3b', '4b', '5b', '1w', '2w', '3w', '6t', '7t', '8t',
                                '9w', '9w', '9w'])

    def test_exposed_melds_count_as_groups(self):
        melds = [make_meld(MELD_TRIPLET, ['fa'] * 3), make_meld(MELD_QUAD, ['9t'] * 4)]
        assert is_winning_hand(['1w', '2w', '3w', '5b', '6b', '7b', '8b', '8b'], melds)
        assert not is_winning_hand(['1w', '2w', '3w', '5b', '6b', '7b', '8b', '9b'], melds)

    def test_decompositions_include_melds_first(self):
        melds = [make_meld(MELD_SEQUENCE, ['3t', '1t', '2t'])]
        groups = next(decompositions(['4w', '4w', '4w', '5b', '5b', '5b', '6t', '6t', '6t', 'bai', 'bai'], melds))
        assert groups[0] == (MELD_SEQUENCE, ('1t', '2t', '3t'))

    def test_every_decomposition_is_listed(self):
        hand = ['1w', '1w', '1w', '2w', '2w', '2w', '3w', '3w', '3w', '7b', '8b', '9b', 'xi', 'xi']
        kinds = [sorted(kind for kind, _ in groups) for groups in decompositions(hand)]
        assert ['pair', 'sequence', 'triplet', 'triplet', 'triplet'] in kinds
        assert ['pair', 'sequence', 'sequence', 'sequence', 'sequence'] in kinds


class TestClaimDiscovery:

    def test_sequence_claims_all_three_positions(self):
        hand = ['1w', '2w', '4w', '5w', 'dong']
        assert find_sequence_claims(hand, '3w') == [['1w', '2w', '3w'], ['2w', '3w', '4w'], ['3w', '4w', '5w']]

    def test_sequence_claims_stay_in_rank_range(self):
        assert find_sequence_claims(['2b', '3b', '8b'], '1b') == [['1b', '2b', '3b']]
        assert find_sequence_claims(['7t', '8t', '2t'], '9t') == [['7t', '8t', '9t']]

    def test_sequence_claims_need_same_suit(self):
        assert find_sequence_claims(['4b', '6t'], '5w') == []

    @pytest.mark.parametrize("honor", ['dong', 'nan', 'xi', 'bei', 'zhong', 'fa', 'bai'])
    def test_no_sequence_claims_on_honors(self, honor):
        hand = ['dong', 'nan', 'xi', 'bei', 'zhong', 'fa', 'bai']
        assert find_sequence_claims(hand, honor) == []

    def test_triplet_and_quad(self):
        assert can_triplet(['5t', '5t', '1w'], '5t')
        assert not can_triplet(['5t', '1w'], '5t')
        assert can_quad(['5t', '5t', '5t'], '5t')
        assert not can_quad(['5t', '5t'], '5t')

    def test_concealed_quad(self):
        assert can_concealed_quad(['fa'] * 4 + ['1w'] * 4) == '1w'
        assert can_concealed_quad(['fa'] * 3 + ['1w']) is None

    def test_claim_options(self):
        hand = ['1w', '1w', '1w', '2b', '3b', '4b', '6b', '7b', '8b', 'dong', 'dong', 'dong', '5t']
        assert claim_options(hand, [], '5t', may_sequence=True) == {WIN}
        assert claim_options(['5t', '5t', '5t', '4t', '6t'], [], '5t', may_sequence=True) == {QUAD, TRIPLET, SEQUENCE}
        assert claim_options(['5t', '5t', '4t', '6t'], [], '5t', may_sequence=False) == {TRIPLET}


class TestScoring:

    def test_baseline(self):
        hand = ['1w', '1w', '1w', '2w', '3w', '4w', '5t', '6t', '7t', '9b', '9b', 'dong', 'dong', 'dong']
        score = score_win(hand)
        assert score.categories == (FAN_BASELINE,)
        assert score.multiplier == 1
        assert score.names == ['平胡']

    def test_self_drawn_all_one_suit_is_seven(self):
        hand = ['1w', '1w', '1w', '2w', '3w', '4w', '5w', '6w', '7w', '8w', '8w', '8w', '9w', '9w']
        score = score_win(hand, is_self_drawn=True)
        assert set(score.categories) == {FAN_SELF_DRAWN, FAN_ALL_ONE_SUIT}
        assert score.multiplier == 7

    def test_all_triplets(self):
        hand = ['2w'] * 3 + ['5b'] * 3 + ['8t'] * 3 + ['zhong'] * 3 + ['1w'] * 2
        score = score_win(hand)
        assert score.categories == (FAN_ALL_TRIPLETS,)
        assert score.multiplier == 3

    def test_all_triplets_with_exposed_quad(self):
        melds = [make_meld(MELD_QUAD, ['7b'] * 4), make_meld(MELD_CONCEALED_QUAD, ['fa'] * 4)]
        score = score_win(['1w'] * 3 + ['3t'] * 3 + ['nan'] * 2, melds)
        assert FAN_ALL_TRIPLETS in score.categories

    def test_exposed_run_spoils_all_triplets(self):
        melds = [make_meld(MELD_SEQUENCE, ['1b', '2b', '3b'])]
        score = score_win(['1w'] * 3 + ['3t'] * 3 + ['7w'] * 3 + ['nan'] * 2, melds)
        assert FAN_ALL_TRIPLETS not in score.categories

    def test_triplets_that_could_be_runs_still_count(self):
        # 111 222 333 reads as three runs too; any all-triplet reading qualifies
        hand = ['1w'] * 3 + ['2w'] * 3 + ['3w'] * 3 + ['dong'] * 3 + ['nan'] * 2
        score = score_win(hand)
        assert FAN_ALL_TRIPLETS in score.categories
        assert FAN_MIXED_ONE_SUIT in score.categories
        assert score.multiplier == 1 + 2 + 3

    def test_mixed_one_suit(self):
        hand = ['1b', '2b', '3b', '4b', '5b', '6b', '7b', '8b', '9b', 'xi', 'xi', 'xi', 'bai', 'bai']
        score = score_win(hand)
        assert score.categories == (FAN_MIXED_ONE_SUIT,)
        assert score.multiplier == 4

    def test_all_one_suit_excludes_mixed(self):
        hand = ['1t', '1t', '1t', '2t', '3t', '4t', '5t', '6t', '7t', '8t', '8t', '8t', '9t', '9t']
        score = score_win(hand)
        assert FAN_ALL_ONE_SUIT in score.categories
        assert FAN_MIXED_ONE_SUIT not in score.categories

    def test_one_suit_counts_meld_tiles(self):
        melds = [make_meld(MELD_TRIPLET, ['5w'] * 3)]
        score = score_win(['1b', '2b', '3b', '4b', '5b', '6b', '7b', '8b', '9b', '9b', '9b'], melds)
        assert FAN_ALL_ONE_SUIT not in score.categories
        assert FAN_MIXED_ONE_SUIT not in score.categories

    def test_payload(self):
        hand = ['1w', '1w', '1w', '2w', '3w', '4w', '5w', '6w', '7w', '8w', '8w', '8w', '9w', '9w']
        payload = score_win(hand, is_self_drawn=True).to_payload()
        assert payload == {
            'categories': [FAN_SELF_DRAWN, FAN_ALL_ONE_SUIT],
            'names': ['自摸', '清一色'],
            'multiplier': 7,
        }
